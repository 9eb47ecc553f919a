"""
Printing subsystem for Receipt Printer.

- commands: ESC/POS byte constants and the CommandBuffer builder
- raster: bitmap to GS v 0 raster conversion
- receipt: Pydantic receipt models
- encoder: test page and receipt encoding
- logo: receipt logo loading and the placeholder logo
- transport: USB and python-escpos transports
- session: the print session lifecycle
- worker: worker pool and job registry

For convenience, common names are re-exported.
"""

from .encoder import *
from .raster import *
from .receipt import *
from .session import *
from .transport import *
from .worker import *
