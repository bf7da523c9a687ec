"""
Per-torrent resource templates.
"""

from ._internal.registry import resource_template


@resource_template(
    "properties",
    name="Torrent Properties",
    description="Detailed properties and metadata for a specific torrent",
)
async def torrent_properties(client, torrent_hash: str):
    return await client.get_torrent_properties(torrent_hash)


@resource_template(
    "files",
    name="Torrent Files",
    description="List of files and their progress within a specific torrent",
)
async def torrent_files(client, torrent_hash: str):
    return await client.get_torrent_files(torrent_hash)


@resource_template(
    "trackers",
    name="Torrent Trackers",
    description="Current trackers and their status for a specific torrent",
)
async def torrent_trackers(client, torrent_hash: str):
    return await client.get_torrent_trackers(torrent_hash)
