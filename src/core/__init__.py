"""
Core module for the grading assistant.

Exports key models, exceptions, and the workflow descriptor for easy access.
"""

from core.models import (
    ClassLevel,
    ComponentScores,
    ConversationStep,
    ExtractedQuestion,
    GradingApproach,
    GradingRequest,
    GradingResult,
    Intent,
    Session,
    SubjectArea,
    WorkflowKind,
    WORKFLOW_STEPS,
    generate_user_id,
)

from core.workflow import WorkflowDescriptor

from core.exceptions import (
    SuperTeacherError,
    ConfigurationError,
    MissingAPIKeyError,
    ProviderError,
    APIConnectionError,
    APITimeoutError,
    APIResponseError,
    ParsingError,
    SessionError,
    SessionStateError,
    StorageError,
    ObjectStoreError,
)

__all__ = [
    # Models
    'ClassLevel',
    'ComponentScores',
    'ConversationStep',
    'ExtractedQuestion',
    'GradingApproach',
    'GradingRequest',
    'GradingResult',
    'Intent',
    'Session',
    'SubjectArea',
    'WorkflowKind',
    'WORKFLOW_STEPS',
    'generate_user_id',
    # Workflow
    'WorkflowDescriptor',
    # Exceptions
    'SuperTeacherError',
    'ConfigurationError',
    'MissingAPIKeyError',
    'ProviderError',
    'APIConnectionError',
    'APITimeoutError',
    'APIResponseError',
    'ParsingError',
    'SessionError',
    'SessionStateError',
    'StorageError',
    'ObjectStoreError',
]
