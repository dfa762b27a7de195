from .reusable import Reusable
from .settings_handler import ServiceSettingsHandler
from .settings_dict import ServiceSettingsDict
