"""StoryStack: consistency and navigation engine for branching story graphs."""

import logging

__version__ = "0.3.0"

# Library convention: stay silent unless the application installs handlers
logging.getLogger(__name__).addHandler(logging.NullHandler())
