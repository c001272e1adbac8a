from app.models.app_setting import AppSetting
from app.models.chat_history import ChatHistory
from app.models.human_control import HumanControl

__all__ = [
    "ChatHistory",
    "HumanControl",
    "AppSetting",
]
