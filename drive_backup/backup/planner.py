"""
Backup planning for Drive Backup.

Maps a remote file to the local artifacts it should produce and decides
whether any of them is stale. Reads the local tree but never writes to it.
"""

from pathlib import Path
from typing import Dict, List, Optional

from ..constants import (
    EXPORT_BAK_INFIX,
    EXPORT_EXTENSIONS,
    EXPORT_FORMATS,
    REDIRECT_SUFFIX,
    REPO_LINK_SUFFIX,
    UNSUPPORTED_MIME_TYPES,
)
from ..core.files import file_matches_md5
from ..core.formatting import join_posix
from ..drive.models import RemoteFile
from .variants import BackupVariant, VariantKind, read_marker_modified_time

ExportFormats = Dict[str, List[str]]


def export_bak_name(name: str, export_format: str) -> str:
    """Name of an export artifact: "<name>.bak<ext>"."""
    extension = EXPORT_EXTENSIONS.get(export_format, "")
    return f"{name}{EXPORT_BAK_INFIX}{extension}"


def is_exportable(remote_file: RemoteFile, export_formats: Optional[ExportFormats] = None) -> bool:
    """Native document types that have export formats configured."""
    formats = EXPORT_FORMATS if export_formats is None else export_formats
    return remote_file.mime_type in formats


def is_supported(remote_file: RemoteFile, export_formats: Optional[ExportFormats] = None) -> bool:
    """
    Check if a remote file can be backed up at all.

    Forms, maps and sites have no byte representation. Other native types
    are only supported when there is something to export them to.
    """
    if remote_file.mime_type in UNSUPPORTED_MIME_TYPES:
        return False
    if remote_file.is_native:
        return is_exportable(remote_file, export_formats)
    return True


def _variant(remote_file: RemoteFile, kind: VariantKind, local_root: Path, rel_path: str, **kwargs) -> BackupVariant:
    local_dir = local_root / remote_file.parent_path if remote_file.parent_path else local_root
    return BackupVariant(
        kind=kind,
        source_id=remote_file.id,
        source_md5=remote_file.md5,
        source_link=remote_file.link,
        source_size=remote_file.size,
        source_modified_time=remote_file.modified_time,
        local_dir_path=local_dir,
        local_file_path=local_root / rel_path,
        display_path=rel_path,
        **kwargs,
    )


def variants_for(
    remote_file: RemoteFile,
    local_root: Path,
    export_formats: Optional[ExportFormats] = None,
) -> List[BackupVariant]:
    """
    List the local artifacts a remote file maps to, in materialization order.

    Raw files map to one variant (a repo link for *.git.json pointers).
    Exportable documents map to one export per format followed by the
    redirect marker, which must stay last: it is the freshness signal for
    the whole group.

    Args:
        remote_file: File from the cache stream
        local_root: Root of the local mirror
        export_formats: Override for the native type -> export formats table

    Returns:
        Ordered list of variants (empty for unsupported types)
    """
    if not is_supported(remote_file, export_formats):
        return []

    if not is_exportable(remote_file, export_formats):
        if remote_file.is_repo_link:
            variant = _variant(remote_file, VariantKind.REPO_LINK, local_root, remote_file.path)
            repo_name = remote_file.safe_name[: -len(REPO_LINK_SUFFIX)]
            variant.repo_dir_path = variant.local_dir_path / repo_name
            return [variant]
        return [_variant(remote_file, VariantKind.RAW, local_root, remote_file.path)]

    formats = EXPORT_FORMATS if export_formats is None else export_formats
    variants = [
        _variant(
            remote_file, VariantKind.EXPORT, local_root,
            export_bak_name(remote_file.path, export_format),
            export_format=export_format,
        )
        for export_format in formats[remote_file.mime_type]
    ]

    redirect_path = join_posix(remote_file.parent_path, remote_file.safe_name + REDIRECT_SUFFIX)
    variants.append(_variant(remote_file, VariantKind.REDIRECT, local_root, redirect_path))
    return variants


def needs_backup(
    remote_file: RemoteFile,
    local_root: Path,
    export_formats: Optional[ExportFormats] = None,
) -> bool:
    """
    Decide whether any local artifact of remote_file is stale.

    Raw files: stale without a remote hash, without a local copy, or when the
    local content hash differs. Linked repositories: always, so the working
    copy gets fast-forwarded. Exportable documents: stale when the remote time
    is unknown, any export or the redirect marker is missing, or the marker
    records a different modification time.
    """
    variants = variants_for(remote_file, local_root, export_formats)
    if not variants:
        return False

    if not is_exportable(remote_file, export_formats):
        variant = variants[0]
        if variant.kind == VariantKind.REPO_LINK:
            return True
        if not remote_file.md5:
            return True
        return not file_matches_md5(variant.local_file_path, remote_file.md5)

    if remote_file.modified_time is None:
        return True

    redirect = variants[-1]
    if not redirect.local_file_path.is_file():
        return True

    for variant in variants[:-1]:
        if not variant.local_file_path.is_file():
            return True

    return read_marker_modified_time(redirect.local_file_path) != remote_file.modified_time
