# main.py
# -*- coding: utf-8 -*-
import argparse
import json
import logging
import sys

from config_manager import DEFAULT_CONFIG_FILE, get_config, check_llm_config, check_embedding_config
from embedding_adapters import create_embedding_adapter_from_config
from novel_errors import NovelGeneratorError, PrerequisiteMissing
from novel_orchestrator import (
    ProjectStore,
    VectorStoreManager,
    setup_logging,
    create_project,
    get_project_info,
    list_projects,
    delete_project,
    get_character_state,
    get_global_summary,
    Novel_architecture_generate,
    Chapter_blueprint_generate,
    generate_chapter_draft,
    finalize_chapter,
    get_chapter,
    list_chapters,
    generate_global_summary,
    generate_character_state,
    enrich_chapter_text,
    save_chapter_content,
    import_knowledge_files,
    clear_knowledge
)


def build_context(config: dict):
    novels_path = config["storage"]["novels_path"]
    store = ProjectStore(novels_path)
    embedding_adapter = create_embedding_adapter_from_config(config["embedding"])
    index = VectorStoreManager(
        embedding_adapter,
        novels_path,
        retrieval_k=int(config["embedding"].get("retrieval_k", 4))
    )
    return store, index


def _print(data):
    if isinstance(data, str):
        print(data)
    else:
        print(json.dumps(data, ensure_ascii=False, indent=2))


def run_command(args, config: dict):
    store, index = build_context(config)
    llm_config = config["llm"]
    cmd = args.command

    if cmd == "create":
        return create_project(store, index, args.title, args.genre, args.topic,
                              args.num_chapters, args.word_number)
    if cmd == "list":
        return list_projects(store)
    if cmd == "info":
        return get_project_info(store, args.project_id)
    if cmd == "architecture":
        return Novel_architecture_generate(store, index, args.project_id, llm_config, args.guidance)["architecture"]
    if cmd == "blueprint":
        return Chapter_blueprint_generate(store, index, args.project_id, llm_config, args.guidance,
                                          overwrite=args.overwrite)
    if cmd == "draft":
        return generate_chapter_draft(
            store, index, args.project_id, args.chapter, llm_config,
            user_guidance=args.guidance,
            characters_involved=args.characters,
            key_items=args.items,
            scene_location=args.location,
            time_constraint=args.time
        )["content"]
    if cmd == "finalize":
        return finalize_chapter(store, index, args.project_id, args.chapter, llm_config)
    if cmd == "chapters":
        return list_chapters(store, args.project_id)
    if cmd == "chapter":
        return get_chapter(store, args.project_id, args.chapter)
    if cmd == "summary":
        if args.generate:
            return generate_global_summary(store, index, args.project_id, llm_config, args.guidance)
        return get_global_summary(store, args.project_id)
    if cmd == "character-state":
        if args.generate:
            return generate_character_state(store, index, args.project_id, llm_config, args.guidance)
        return get_character_state(store, args.project_id)
    if cmd == "enrich":
        info = get_project_info(store, args.project_id)
        chapter = get_chapter(store, args.project_id, args.chapter)
        if not chapter["content"].strip():
            raise PrerequisiteMissing(f"chapter_{args.chapter}.draft", args.project_id)
        word_number = args.word_number or info["word_number"]
        enriched = enrich_chapter_text(chapter["content"], word_number, llm_config)
        if args.save:
            save_chapter_content(store, args.project_id, args.chapter, enriched)
        return enriched
    if cmd == "import-knowledge":
        get_project_info(store, args.project_id)
        return import_knowledge_files(index, args.project_id, args.files)
    if cmd == "search":
        return [
            {"page_content": d.page_content, "metadata": d.metadata}
            for d in index.search(args.project_id, args.query)
        ]
    if cmd == "clear-knowledge":
        get_project_info(store, args.project_id)
        return {"cleared": clear_knowledge(index, args.project_id)}
    if cmd == "delete":
        return {"deleted": delete_project(store, index, args.project_id)}
    if cmd == "check":
        return {
            "llm": check_llm_config(llm_config),
            "embedding": check_embedding_config(config["embedding"]),
        }
    raise ValueError(f"Unknown command: {cmd}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AI novel generator command line")
    parser.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
    parser.add_argument("--verbose", "-v", action="store_true", help="输出调试日志")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create", help="新建小说项目")
    p.add_argument("--title", required=True)
    p.add_argument("--genre", default="")
    p.add_argument("--topic", default="")
    p.add_argument("--num-chapters", type=int, required=True)
    p.add_argument("--word-number", type=int, default=3000)

    sub.add_parser("list", help="列出所有项目")

    for name, help_text in (("info", "查看项目信息"), ("chapters", "列出章节"),
                            ("clear-knowledge", "清空知识库"), ("delete", "删除项目")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("project_id")

    for name, help_text in (("architecture", "生成小说架构"), ("blueprint", "生成章节目录")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("project_id")
        p.add_argument("--guidance", default="", help="用户指导")
        if name == "blueprint":
            p.add_argument("--overwrite", action="store_true", help="忽略已有目录重新生成")

    p = sub.add_parser("draft", help="生成章节草稿")
    p.add_argument("project_id")
    p.add_argument("chapter", type=int)
    p.add_argument("--guidance", default="")
    p.add_argument("--characters", default="")
    p.add_argument("--items", default="")
    p.add_argument("--location", default="")
    p.add_argument("--time", default="")

    for name, help_text in (("finalize", "定稿章节"), ("chapter", "查看章节")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("project_id")
        p.add_argument("chapter", type=int)

    for name, help_text in (("summary", "全局摘要"), ("character-state", "角色状态")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("project_id")
        p.add_argument("--generate", action="store_true", help="重新生成而不是查看")
        p.add_argument("--guidance", default="")

    p = sub.add_parser("enrich", help="扩写章节")
    p.add_argument("project_id")
    p.add_argument("chapter", type=int)
    p.add_argument("--word-number", type=int, default=None, help="目标字数，默认使用项目设定")
    p.add_argument("--save", action="store_true", help="用扩写结果覆盖章节正文")

    p = sub.add_parser("import-knowledge", help="导入知识库文件（txt、pdf、docx）")
    p.add_argument("project_id")
    p.add_argument("files", nargs="+")

    p = sub.add_parser("search", help="检索知识库")
    p.add_argument("project_id")
    p.add_argument("query")

    sub.add_parser("check", help="测试 LLM 与 Embedding 配置")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config(args.config)
    log_config = config["logging"]
    setup_logging(log_file=log_config.get("log_file") or None,
                  level="DEBUG" if args.verbose else log_config.get("level"))
    try:
        result = run_command(args, config)
    except (NovelGeneratorError, ValueError) as e:
        logging.error(f"{type(e).__name__}: {e}")
        return 1
    _print(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
