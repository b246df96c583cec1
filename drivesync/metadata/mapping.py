from drivesync.elastic.util import ElasticMapping

VERSION = 1


def files_index_name(prefix: str) -> str:
    return f"{prefix}_v{VERSION}_files"


def folders_index_name(prefix: str) -> str:
    return f"{prefix}_v{VERSION}_folders"


def renames_index_name(prefix: str) -> str:
    return f"{prefix}_v{VERSION}_renames"


files_mapping: ElasticMapping = dict(
    id={"type": "keyword"},
    owner_id={"type": "keyword"},
    name={"type": "keyword"},
    original_name={"type": "keyword"},
    size={"type": "long"},
    mime_type={"type": "keyword"},
    storage_key={"type": "keyword"},
    parent_folder_id={"type": "keyword"},
    path={"type": "keyword"},
    tags={"type": "keyword"},
    download_count={"type": "integer"},
    last_accessed_at={"type": "date"},
    created_at={"type": "date"},
)

folders_mapping: ElasticMapping = dict(
    id={"type": "keyword"},
    owner_id={"type": "keyword"},
    name={"type": "keyword"},
    parent_folder_id={"type": "keyword"},
    path={"type": "keyword"},
    color={"type": "keyword"},
    description={"type": "text"},
    file_count={"type": "integer"},
    folder_count={"type": "integer"},
    total_size={"type": "long"},
    created_at={"type": "date"},
)

renames_mapping: ElasticMapping = dict(
    id={"type": "keyword"},
    owner_id={"type": "keyword"},
    old_path={"type": "keyword"},
    new_path={"type": "keyword"},
    created_at={"type": "date"},
)
