"""
Translation layer: engine clients, engine selection and glossary enforcement.
"""

from .engines import (
    AutoEngine,
    CustomEndpointEngine,
    DeepLEngine,
    EngineClient,
    EngineReply,
    EngineRequest,
    GoogleTranslateEngine,
    LibreTranslateEngine,
    OpenAIEngine,
    build_engine_clients,
)
from .glossary import GlossaryResult, enforce_glossary, load_glossary
from .selector import (
    AttemptOutcome,
    EngineAttempt,
    EngineSelector,
    determine_engine_order,
    serialize_raw_response,
    to_translation_record,
)

__all__ = [
    'AttemptOutcome',
    'AutoEngine',
    'CustomEndpointEngine',
    'DeepLEngine',
    'EngineAttempt',
    'EngineClient',
    'EngineReply',
    'EngineRequest',
    'EngineSelector',
    'GlossaryResult',
    'GoogleTranslateEngine',
    'LibreTranslateEngine',
    'OpenAIEngine',
    'build_engine_clients',
    'determine_engine_order',
    'enforce_glossary',
    'load_glossary',
    'serialize_raw_response',
    'to_translation_record',
]
