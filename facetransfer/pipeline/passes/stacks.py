"""Stack pass — catalog stacks are dropped and regrouped by the library's stack UUIDs."""
from __future__ import annotations

from facetransfer.db.variables import new_global_id
from facetransfer.models import CatalogImage, SourceVersion
from facetransfer.pipeline.session import TransferSession

STACK_TABLES = ("AgLibraryFolderStack", "AgLibraryFolderStackData", "AgLibraryFolderStackImage")


def remove_all_stacks(session: TransferSession) -> None:
    for table in STACK_TABLES:
        session.catalog.execute(f"DELETE FROM {table}")


def collect_stack(session: TransferSession, image: CatalogImage, version: SourceVersion) -> str | None:
    """Add *image* to the group of its version's stack.  Returns the stack UUID."""
    if not version.stack_uuid:
        return None
    session.stacks.setdefault(version.stack_uuid, []).append(image.image_id)
    return version.stack_uuid


def create_stack(session: TransferSession, image_ids: list[int]) -> int:
    """Create one collapsed stack holding *image_ids* at positions 1..n."""
    conn = session.catalog
    stack_id = session.ids.next_id()
    conn.execute(
        """INSERT INTO AgLibraryFolderStack (id_local, id_global, collapsed, text)
           VALUES (?, ?, 1, '')""",
        [stack_id, new_global_id()],
    )
    for position, image_id in enumerate(image_ids, start=1):
        conn.execute(
            """INSERT INTO AgLibraryFolderStackImage (id_local, collapsed, image, position, stack)
               VALUES (?, 1, ?, ?, ?)""",
            [session.ids.next_id(), image_id, position, stack_id],
        )
    return stack_id


def create_stacks(session: TransferSession) -> int:
    """Create a stack for every collected group.  Returns stacks created."""
    created = 0
    for image_ids in session.stacks.values():
        if not image_ids:
            continue
        create_stack(session, image_ids)
        created += 1
    session.stats.stacks_created += created
    return created
