#novel_orchestrator/__init__.py
from .project_store import ProjectStore
from .project import (
    create_project,
    get_project_info,
    list_projects,
    delete_project,
    get_architecture,
    get_blueprint,
    get_character_state,
    get_global_summary
)
from .architecture import Novel_architecture_generate, generate_character_state
from .blueprint import Chapter_blueprint_generate, compute_chunk_size
from .chapter import (
    get_last_n_chapters_text,
    summarize_recent_chapters,
    build_chapter_prompt,
    generate_chapter_draft,
    get_chapter,
    list_chapters,
    save_chapter_content
)
from .finalization import finalize_chapter, enrich_chapter_text, generate_global_summary
from .knowledge import import_knowledge_file, import_knowledge_files, clear_knowledge
from .vectorstore_utils import VectorStoreManager, get_relevant_context_from_vector_store
from .common import setup_logging
