# Security module - Ownership and permission checks on configuration files
# Fail closed - any irregularity aborts the whole walk

from .ownership import OwnershipResolver, FilesystemOwnership, ResolvedPath
from .file_walker import visit_config_files, check_path, extension_dir

__all__ = [
    "OwnershipResolver", "FilesystemOwnership", "ResolvedPath",
    "visit_config_files", "check_path", "extension_dir",
]
