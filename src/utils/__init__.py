"""Bottom layer of the garden engine: nothing here knows about stones or strokes.

    geometry        world ↔ texture mapping, simplification, Catmull-Rom, normals
    validators      pattern.v1 config and garden.v1 save schemas (pydantic)
    fs              atomic YAML / PNG writes
    strokes         stroke and stone ids, point records
    profiler        frame timers
    logging_config  root logger setup and context fields

Modules in utils/ never import from src.pattern_engine.

    from src.utils import geometry, validators
    from src.utils import setup_logging, log_context
"""

from . import fs
from . import geometry
from . import logging_config
from . import profiler
from . import strokes
from . import validators

from .logging_config import get_logger, log_context, push_context, setup_logging

__all__ = [
    'fs',
    'geometry',
    'logging_config',
    'profiler',
    'strokes',
    'validators',
    'setup_logging',
    'get_logger',
    'push_context',
    'log_context',
]
