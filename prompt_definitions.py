# prompt_definitions.py
# -*- coding: utf-8 -*-
"""
集中存放所有提示词模板（str.format 占位符）
"""

# =============== 1. 核心种子 ===================
core_seed_prompt = """\
作为专业作家，请用"雪花写作法"第一步构建故事核心：
主题：{topic}
类型：{genre}
篇幅：约{number_of_chapters}章（每章{word_number}字）

请用单句公式概括故事本质，例如：
"当[主角]遭遇[核心事件]，必须[关键行动]，否则[灾难后果]；与此同时，[隐藏的更大危机]正在发酵。"

要求：
1. 必须包含显性冲突与潜在危机
2. 体现人物核心驱动力
3. 暗示世界观关键矛盾
4. 使用25-100字精准表达

用户指导（若为空可忽略）：
{user_guidance}

仅返回故事核心文本，不要解释任何内容。
"""

# =============== 2. 角色动力学 ===================
character_dynamics_prompt = """\
主题：{topic}
类型：{genre}
篇幅：约{number_of_chapters}章（每章{word_number}字）

基于以下故事核心：
{core_seed}

请设计3-6个具有动态变化潜力的核心角色，每个角色需包含：
特征：
- 背景、外貌、性别、年龄、职业等
- 暗藏的秘密或潜在弱点（可与世界观或其他角色有关）

核心驱动力三角：
- 表面追求（物质目标）
- 深层渴望（情感需求）
- 灵魂需求（哲学层面）

角色弧线设计：
初始状态 → 触发事件 → 认知失调 → 蜕变节点 → 最终状态

关系冲突网：
- 与其他角色的关系或对立点
- 价值观冲突与合作纽带
- 隐藏的背叛可能性

用户指导（若为空可忽略）：
{user_guidance}

仅给出最终文本，不要解释任何内容。
"""

# =============== 3. 世界观 ===================
world_building_prompt = """\
主题：{topic}
类型：{genre}
篇幅：约{number_of_chapters}章（每章{word_number}字）

为服务以下故事核心：
{core_seed}

并与以下角色体系相互支撑：
{character_dynamics}

请构建三维交织的世界观：
1. 物理维度：空间结构、时间轴、法则体系（物理/魔法/社会规则及其漏洞）
2. 社会维度：权力结构断层、文化禁忌、经济命脉
3. 隐喻维度：贯穿全书的视觉符号、气候或环境变化映射的心理状态、建筑风格暗示的文明困境

要求：每个维度至少包含3个可与角色决策产生互动的动态元素。

用户指导（若为空可忽略）：
{user_guidance}

仅给出最终文本，不要解释任何内容。
"""

# =============== 4. 三幕式情节架构 ===================
plot_architecture_prompt = """\
主题：{topic}
类型：{genre}
篇幅：约{number_of_chapters}章（每章{word_number}字）

基于以下元素：
- 核心种子：{core_seed}
- 角色体系：{character_dynamics}
- 世界观：{world_building}

要求按以下结构设计三幕式悬念：
第一幕（触发）
- 日常状态中的异常征兆（3处铺垫）
- 引出故事：展示主线、暗线、副线的开端
- 关键事件：打破平衡的催化剂
- 错误抉择：主角的认知局限导致的错误反应

第二幕（对抗）
- 剧情升级：关键事件的深化
- 双重压力：外部障碍升级与内部挫折
- 虚假胜利：看似解决实则深化危机的转折点
- 灵魂黑夜：世界观认知颠覆时刻

第三幕（解决）
- 代价显现：解决危机必须牺牲的核心价值
- 嵌套转折：至少包含三层认知颠覆
- 余响：留下开放式悬念

用户指导（若为空可忽略）：
{user_guidance}

仅给出最终文本，不要解释任何内容。
"""

# =============== 5. 初始角色状态 ===================
create_character_state_prompt = """\
依据以下角色设定：
{character_dynamics}

请生成一份角色状态文档，为每个角色按以下格式列出：
角色名：
├──物品：
├──能力：
├──状态：
│  ├──身体状态：
│  └──心理状态：
├──主要角色间关系网：
└──触发或加深的事件：

新出场角色：
- （此处填写未来出场的角色，可留空）

仅返回角色状态文本，不要解释任何内容。
"""

# =============== 6. 章节目录 ===================
chapter_blueprint_prompt = """\
基于以下小说架构：
{novel_architecture}

设计{number_of_chapters}章的节奏分布：
1. 章节集群划分：每3-5章构成一个悬念单元，包含完整的小高潮
2. 每章需明确：章节定位、核心悬念类型、情感基调变化、伏笔操作、认知颠覆强度

输出格式示例（每章之间空一行）：
第n章 - [标题]
本章定位：[角色/事件/主题/...]
核心作用：[推进/转折/揭示/...]
悬念密度：[紧凑/渐进/爆发/...]
伏笔操作：埋设(A线索)→强化(B矛盾)...
认知颠覆：★☆☆☆☆
本章简述：[一句话概括]

用户指导（若为空可忽略）：
{user_guidance}

要求：
- 使用精炼语言描述，每章字数控制在100字以内
- 合理安排节奏，确保整体悬念曲线的连贯性
- 不要出现结局章节

仅给出最终文本，不要解释任何内容。
"""

chunked_chapter_blueprint_prompt = """\
基于以下小说架构：
{novel_architecture}

已有章节目录（若为空则说明是初始生成）：
{chapter_list}

当前请为全书共{number_of_chapters}章中的第{n}章到第{m}章设计节奏分布，
需与已有章节保持连贯，格式与已有章节一致（每章之间空一行）：
第n章 - [标题]
本章定位：[角色/事件/主题/...]
核心作用：[推进/转折/揭示/...]
悬念密度：[紧凑/渐进/爆发/...]
伏笔操作：埋设(A线索)→强化(B矛盾)...
认知颠覆：★☆☆☆☆
本章简述：[一句话概括]

用户指导（若为空可忽略）：
{user_guidance}

仅给出第{n}章到第{m}章的目录文本，不要解释任何内容。
"""

# =============== 7. 前文摘要（当前章节） ===================
summarize_recent_chapters_prompt = """\
作为一名专业的小说编辑和知识管理专家，请基于已完成的前几章内容和本章信息，生成当前章节的精准摘要。

前几章内容：
{combined_text}

当前章节信息：
第{novel_number}章《{chapter_title}》：
├── 本章定位：{chapter_role}
├── 核心作用：{chapter_purpose}
├── 悬念密度：{suspense_level}
├── 伏笔操作：{foreshadowing}
├── 认知颠覆：{plot_twist_level}
└── 本章简述：{chapter_summary}

下一章信息：
第{next_chapter_number}章《{next_chapter_title}》：
├── 本章定位：{next_chapter_role}
├── 核心作用：{next_chapter_purpose}
└── 本章简述：{next_chapter_summary}

要求：
1. 摘要包含前文关键信息以及本章需要承接的悬念
2. 不超过800字
3. 仅为承接之用，不得提前剧透下一章

请按以下格式输出：
当前章节摘要: <摘要内容>
"""

# =============== 8. 第一章草稿 ===================
first_chapter_system_prompt = """\
你是一位专业的小说作家，现在正在创作小说的第一章。
【严格限制】
1. 只生成第一章内容，不能提前展开后续章节的情节
2. 可以使用全局信息理解背景和设定，但不要在第一章中展开未来章节的内容
3. 可以为后续章节埋下伏笔，但不要揭示伏笔的后续发展
4. 不要出现"第二章"、"接下来"、"后来"等指向未来章节的词语
5. 确保第一章内容完整，不要留下"未完待续"的暗示
"""

first_chapter_draft_prompt = """\
即将创作：第{novel_number}章《{chapter_title}》
本章定位：{chapter_role}
核心作用：{chapter_purpose}
悬念密度：{suspense_level}
伏笔操作：{foreshadowing}
认知颠覆：{plot_twist_level}
本章简述：{chapter_summary}

可用元素：
- 核心人物(可能未指定)：{characters_involved}
- 关键道具(可能未指定)：{key_items}
- 空间坐标(可能未指定)：{scene_location}
- 时间压力(可能未指定)：{time_constraint}

参考文档：
- 小说设定：
{novel_setting}

用户指导（若为空可忽略）：
{user_guidance}

完成第{novel_number}章的正文，字数要求{word_number}字，至少设计2个或以上具有动态张力的场景。
仅返回章节正文文本，不使用markdown格式，不要解释任何内容。
"""

# =============== 9. 后续章节草稿 ===================
next_chapter_draft_prompt = """\
参考文档：
└── 前文摘要：
    {global_summary}

└── 前章结尾段：
    {previous_chapter_excerpt}

└── 用户指导：
    {user_guidance}

└── 角色状态：
    {character_state}

└── 当前章节摘要：
    {short_summary}

当前章节信息：
第{novel_number}章《{chapter_title}》：
├── 章节定位：{chapter_role}
├── 核心作用：{chapter_purpose}
├── 悬念密度：{suspense_level}
├── 伏笔设计：{foreshadowing}
├── 转折程度：{plot_twist_level}
├── 章节简述：{chapter_summary}
├── 字数要求：{word_number}字
├── 核心人物：{characters_involved}
├── 关键道具：{key_items}
├── 场景地点：{scene_location}
└── 时间压力：{time_constraint}

下一章节目录（仅供衔接，不得在本章中揭示）：
第{next_chapter_number}章《{next_chapter_title}》：
├── 章节定位：{next_chapter_role}
├── 核心作用：{next_chapter_purpose}
├── 悬念密度：{next_chapter_suspense_level}
├── 伏笔设计：{next_chapter_foreshadowing}
├── 转折程度：{next_chapter_plot_twist_level}
└── 章节简述：{next_chapter_summary}

知识库参考：
{filtered_context}

依据前面所有设定，开始完成第{novel_number}章的正文，字数要求{word_number}字，
内容生成严格遵循：
- 用户指导
- 当前章节摘要
- 当前章节信息
- 无逻辑漏洞
确保章节内容与前文摘要、前章结尾段衔接流畅，下一章目录保证前后衔接的自然过渡。
仅返回章节正文文本，不使用markdown格式，不要解释任何内容。
"""

# =============== 10. 定稿优化 ===================
chapter_optimize_prompt = """\
请优化以下章节内容，确保其符合小说设定和章节目录要求：

章节信息：
{chapter_outline}

小说设定：
{novel_architecture}

前一章结尾（供参考）：
{previous_chapter_excerpt}

当前章节内容：
{chapter_text}

请优化以上章节内容，要求：
1. 保持与小说设定的一致性
2. 确保符合章节目录中定义的定位、作用和悬念密度
3. 保持与前一章的连贯性
4. 优化文笔，增强表现力和可读性
5. 保持核心情节不变，但可以调整细节描写
6. 确保字数约{word_number}字

仅返回优化后的章节正文文本，不要使用markdown格式，不要添加解释。
"""

# =============== 11. 前文摘要更新 ===================
summary_prompt = """\
以下是新完成的章节文本：
{chapter_text}

这是当前的前文摘要（可为空）：
{global_summary}

请根据本章新增内容，更新前文摘要。
要求：
- 保留既有重要信息，同时融入新剧情要点
- 以简洁、连贯的语言描述全书进展
- 客观描绘，不展开联想或解释
- 总字数控制在2000字以内

仅返回前文摘要文本，不要解释任何内容。
"""

global_summary_prompt = """\
基于以下小说架构：
{novel_architecture}

以及章节目录（可能为空）：
{chapter_blueprint}

请为这部小说撰写一份全局摘要，概括主线走向、核心人物关系与已知的关键悬念，
总字数控制在1500字以内。

用户指导（若为空可忽略）：
{user_guidance}

仅返回摘要文本，不要解释任何内容。
"""

# =============== 12. 角色状态更新 ===================
update_character_state_prompt = """\
以下是新完成的章节文本：
{chapter_text}

这是当前的角色状态文档：
{old_state}

请更新主要角色状态，内容格式：
角色名：
├──物品：
├──能力：
├──状态：
│  ├──身体状态：
│  └──心理状态：
├──主要角色间关系网：
└──触发或加深的事件：

要求：
- 在已有文档基础上进行增删，不改变原有结构
- 新出场角色的信息简要填写在"新出场角色"下
- 已死亡角色仅保留名称并注明

仅返回更新后的角色状态文本，不要解释任何内容。
"""

# =============== 13. 扩写 ===================
enrich_chapter_prompt = """\
以下章节文本较短，请在保持剧情连贯的前提下进行扩写，使其更充实，接近 {word_number} 字左右：
原内容：
{chapter_text}

仅返回扩写后的章节正文文本，不要解释任何内容。
"""
