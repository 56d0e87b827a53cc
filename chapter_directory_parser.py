# chapter_directory_parser.py
# -*- coding: utf-8 -*-
import re

# 兼容是否使用方括号、markdown 加粗包裹章节标题，例如：
#   第1章 - 紫极光下的预兆
#   第1章 - [紫极光下的预兆]
#   **第1章：紫极光下的预兆**
# “章”之后必须是分隔符或行尾，“第1章到第2章目录如下：”这类说明行不算章节标题
chapter_header_pattern = re.compile(
    r'^[#*\s]*第\s*(\d+)\s*章(?:\s*[-–—:：]\s*(.*?))?[*\s]*$'
)

# 字段名 -> 行首标签
FIELD_LABELS = (
    ("chapter_role", "本章定位"),
    ("chapter_purpose", "核心作用"),
    ("suspense_level", "悬念密度"),
    ("foreshadowing", "伏笔操作"),
    ("plot_twist_level", "认知颠覆"),
    ("chapter_summary", "本章简述"),
)

field_patterns = {
    key: re.compile(r'^[\s*>\-├└│─]*' + label + r'\s*[：:]\s*(.*)$')
    for key, label in FIELD_LABELS
}

DEFAULT_FIELDS = {
    "chapter_role": "常规章节",
    "chapter_purpose": "内容推进",
    "suspense_level": "中等",
    "foreshadowing": "无",
    "plot_twist_level": "★☆☆☆☆",
    "chapter_summary": "",
}


def _strip_brackets(value: str) -> str:
    value = value.strip().strip('*').strip()
    if value.startswith('[') and value.endswith(']'):
        value = value[1:-1]
    return value.strip()


def _has_fields(entry: dict) -> bool:
    return any(key in entry for key in DEFAULT_FIELDS)


def default_chapter_info(chapter_number: int) -> dict:
    """目录中找不到对应章节时使用的默认结构。"""
    info = {
        "chapter_number": chapter_number,
        "chapter_title": f"第{chapter_number}章",
    }
    info.update(DEFAULT_FIELDS)
    info["is_fallback"] = True
    return info


def parse_chapter_blueprint(blueprint_text: str):
    """
    解析整份章节蓝图文本，返回一个列表，每个元素是一个 dict：
    {
      "chapter_number": int,
      "chapter_title": str,
      "chapter_role": str,       # 本章定位
      "chapter_purpose": str,    # 核心作用
      "suspense_level": str,     # 悬念密度
      "foreshadowing": str,      # 伏笔操作
      "plot_twist_level": str,   # 认知颠覆
      "chapter_summary": str,    # 本章简述
      "is_fallback": False
    }
    以章节标题行为分界，不依赖章节之间的空行。
    """
    if not blueprint_text:
        return []

    results = {}
    current = None
    for line in blueprint_text.splitlines():
        line_stripped = line.strip()
        if not line_stripped:
            continue

        header_match = chapter_header_pattern.match(line_stripped)
        if header_match:
            chapter_number = int(header_match.group(1))
            if chapter_number < 1:
                current = None
                continue
            title = _strip_brackets(header_match.group(2) or "")
            current = {
                "chapter_number": chapter_number,
                "chapter_title": title or f"第{chapter_number}章",
            }
            # 同一章重复出现时以先出现且带字段的为准
            existing = results.get(chapter_number)
            if existing is None or not _has_fields(existing):
                results[chapter_number] = current
            continue

        if current is None:
            continue

        for key, pattern in field_patterns.items():
            m = pattern.match(line_stripped)
            if m:
                if key not in current:
                    current[key] = _strip_brackets(m.group(1))
                break

    entries = []
    for chapter_number in sorted(results):
        entry = results[chapter_number]
        for key, default in DEFAULT_FIELDS.items():
            if not entry.get(key):
                entry[key] = default
        entry["is_fallback"] = False
        entries.append(entry)
    return entries


def get_chapter_info_from_blueprint(blueprint_text: str, target_chapter_number: int):
    """
    在已经加载好的章节蓝图文本中，找到对应章号的结构化信息，返回一个 dict。
    若找不到则返回一个默认的结构（is_fallback=True），不会抛出异常。
    """
    for ch in parse_chapter_blueprint(blueprint_text):
        if ch["chapter_number"] == target_chapter_number:
            return ch
    return default_chapter_info(target_chapter_number)


def format_chapter_outline(chapter_info: dict) -> str:
    """将章节信息拼接为章节大纲文本（仅使用目录字段，不调用模型）。"""
    return (
        f"第{chapter_info['chapter_number']}章《{chapter_info['chapter_title']}》\n"
        f"本章定位：{chapter_info['chapter_role']}\n"
        f"核心作用：{chapter_info['chapter_purpose']}\n"
        f"悬念密度：{chapter_info['suspense_level']}\n"
        f"伏笔操作：{chapter_info['foreshadowing']}\n"
        f"认知颠覆：{chapter_info['plot_twist_level']}\n"
        f"本章简述：{chapter_info['chapter_summary']}"
    )


def limit_chapter_blueprint(blueprint_text: str, limit_chapters: int = 100) -> str:
    """
    从已有章节目录中只取最近的 limit_chapters 章，以避免 prompt 超长。
    """
    pattern = r"(第\s*\d+\s*章.*?)(?=第\s*\d+\s*章|$)"
    chapters = re.findall(pattern, blueprint_text, flags=re.DOTALL)
    if not chapters:
        return blueprint_text

    if len(chapters) <= limit_chapters:
        return blueprint_text

    selected = chapters[-limit_chapters:]
    return "\n\n".join(c.strip() for c in selected).strip()


def max_chapter_number(blueprint_text: str) -> int:
    """目录中已出现的最大章号，没有则为 0。"""
    numbers = [entry["chapter_number"] for entry in parse_chapter_blueprint(blueprint_text)]
    return max(numbers) if numbers else 0
