"""
Conversation layer.

The state machine that walks a teacher through a grading workflow: intent
classification, per-step handlers, workflow descriptors and the engine.
"""

from conversation.context import EngineServices, ImagePayload, TurnContext
from conversation.intent import IntentClassifier, Rule, RULES
from conversation.workflows import CBSE_WORKFLOW, SIMPLE_WORKFLOW, get_workflow
from conversation.engine import ConversationEngine
from conversation.factory import build_engine, build_services

__all__ = [
    'EngineServices',
    'ImagePayload',
    'TurnContext',
    'IntentClassifier',
    'Rule',
    'RULES',
    'CBSE_WORKFLOW',
    'SIMPLE_WORKFLOW',
    'get_workflow',
    'ConversationEngine',
    'build_engine',
    'build_services',
]
