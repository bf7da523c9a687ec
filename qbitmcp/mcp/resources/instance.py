"""
Instance-wide resources: torrent list, transfer info and categories.
"""

from ._internal.registry import resource


@resource(
    "torrents",
    name="Torrent List ({instance})",
    description="A live list of all torrents on instance: {instance}",
)
async def torrents(client):
    return await client.get_torrent_list()


@resource(
    "transfer",
    name="Global Transfer Info ({instance})",
    description="Current speeds and limits on instance: {instance}",
)
async def transfer(client):
    return await client.get_global_transfer_info()


@resource(
    "categories",
    name="Categories ({instance})",
    description="All defined categories on instance: {instance}",
)
async def categories(client):
    return await client.get_categories()
