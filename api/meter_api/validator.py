
from .errors import DeviceNotFound, NodeNotFound
from .repos.mongo_repo import MongoRepo


def verify_references(repo: MongoRepo, device_id: str, node_id: str) -> None:
    if repo.find_device(device_id) is None:
        raise DeviceNotFound()
    # a node registered under another gateway does not count
    if repo.find_linked_node(node_id, device_id) is None:
        raise NodeNotFound()
