from ._errors import *
from ._config import *
from ._utils import *
from ._parser import *
from ._profile import *
from ._transport import *
from ._retry import *
from ._casclient import *
from .cerbere import *
