"""
Demo vision client.

Returns canned question papers and answers so the whole conversation can
be walked through without API keys. Grading in demo mode uses the local
fallback grader.
"""

from typing import Optional

from loguru import logger

from ai.base_provider import ImageSource, VisionClient, image_hint
from prompts.ocr import is_question_paper_prompt

ECONOMICS_PAPER = """CBSE Sample Paper - Economics
Class XII    MM: 40    Time: 2 hours
Section A
1. Define marginal propensity to consume.
2. What is meant by ex-ante savings?
3. Give the meaning of a fixed exchange rate.
4. State the components of money supply.
5. What is a revenue deficit?
Section B
6. Explain the working of the investment multiplier.
7. Distinguish between stock and flow variables.
8. Explain any two functions of the central bank.
9. Explain the concept of deficient demand.
10. Distinguish between balance of trade and balance of payments.
Section C
11. Explain the circular flow of income in a two-sector economy.
12. Explain the measures to correct excess demand.
13. Discuss the objectives of a government budget."""

ECONOMICS_NOTE = """Section A has 5 questions of 2 marks each.
Questions 6-10 carry 3 marks.
Questions 11-13 carry 5 marks."""

SCIENCE_PAPER = """Periodic Test - Science
Class X    Maximum Marks: 20
QUESTIONS                                          MARKS
1. Define a balanced chemical equation.              2
2. Why is respiration an exothermic reaction?        2
3. State two laws of refraction of light.            3
4. Explain the role of the placenta.                 3
5. Draw the structure of a neuron and label it.      5
6. Describe the process of nutrition in amoeba.      5"""

GENERAL_PAPER = """Class Test    Total Marks: 15
Q1. Write a short note on your favourite season. (5 marks)
Q2. Describe a visit to a historical monument. (5 marks)
Q3. Write a letter to your friend about your holidays. (5 marks)"""

ECONOMICS_ANSWER = """The investment multiplier shows how a change in investment leads to a larger
change in national income. If MPC is 0.8 then the multiplier is 1/(1-0.8) = 5.
When investment rises by 100 crore, income rises by 500 crore because the spending of one
person becomes the income of another. Each round of income is partly consumed and partly
saved, so the increase becomes smaller every round until the total reaches 500 crore."""

GENERAL_ANSWER = """Photosynthesis is the process by which green plants make their own food using
sunlight, carbon dioxide and water. Chlorophyll in the leaves absorbs light energy. The
energy is used to split water and produce glucose, and oxygen is released as a by-product."""


class DemoVisionClient(VisionClient):
    """Canned OCR output keyed by the prompt and the image name."""

    name = "demo-vision"

    async def extract_text(self, image: ImageSource, hint: Optional[str] = None) -> str:
        source = image_hint(image).lower()
        economics = "econ" in source or "economics" in (hint or "").lower()
        if is_question_paper_prompt(hint):
            if economics:
                text = f"{ECONOMICS_PAPER}\n{ECONOMICS_NOTE}"
            elif "sci" in source or "science" in (hint or "").lower():
                text = SCIENCE_PAPER
            else:
                text = GENERAL_PAPER
        else:
            text = ECONOMICS_ANSWER if economics else GENERAL_ANSWER

        logger.debug(f"Demo OCR returned {len(text)} chars for {source or 'upload'}")
        return text
