"""提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取提示词文本：
- gardening_bot_system: 聊天机器人的系统提示词（园艺专家人设）。
- plant_scan_instruction: 扫描请求中随图片一起发送的指令。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_prompt(name: str, locale: str = "en") -> str:
    """根据提示词名称和语言加载文本，去掉首尾空白。"""

    fname = PROMPTS_DIR / locale / f"{name}.md"
    return fname.read_text(encoding="utf-8").strip()


def load_system_prompt(locale: str = "en") -> str:
    return load_prompt("gardening_bot_system", locale)


def load_scan_instruction(locale: str = "en") -> str:
    return load_prompt("plant_scan_instruction", locale)
