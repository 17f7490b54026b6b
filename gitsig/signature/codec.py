"""Encode signatures into store objects and decode them back.

Layout ``v1`` (current) is a commit wrapping a tree::

    version    blob  "v1"
    algorithm  blob  "signify" | "minisign"
    signature  blob  serialized signature text
    object     blob/tree entry pointing at the signed object (leaf targets only)

For commit targets the ``object`` entry is omitted and the signed commit is
the wrapper's sole parent. Layout ``v0`` is a bare tree holding ``object`` (a
blob whose bytes are the raw signed id) and ``signature`` (binary signify).
"""

from __future__ import annotations

import logging

from gitsig.app.ports import (
    BLOB_MODE,
    TREE_MODE,
    ObjectKind,
    ObjectStorePort,
    StoredObject,
    TreeEntry,
)
from gitsig.errors import (
    IncompatibleKeyType,
    MalformedSignatureObject,
    ObjectLookupError,
    UnsupportedObjectKind,
)
from gitsig.keys import MinisignPrivateKey, PrivateKey
from gitsig.signature.model import (
    FlatSignature,
    SignatureAlgorithm,
    SignatureObject,
    SignatureVersion,
    WrappedSignature,
)

logger = logging.getLogger(__name__)

VERSION_ENTRY = "version"
ALGORITHM_ENTRY = "algorithm"
SIGNATURE_ENTRY = "signature"
OBJECT_ENTRY = "object"

SIGNABLE_KINDS = (ObjectKind.BLOB, ObjectKind.TREE, ObjectKind.COMMIT)


def wrapper_message(object_id: str) -> str:
    """Commit message of the wrapper around a signature of ``object_id``."""
    return f"signature over {object_id}\n"


def serialize_signature(
    secret_key: PrivateKey, message: bytes, version: SignatureVersion
) -> bytes:
    """Sign ``message`` and serialize the signature the way ``version`` stores it."""
    if version is SignatureVersion.V0:
        if isinstance(secret_key, MinisignPrivateKey):
            raise IncompatibleKeyType("minisign keys cannot produce v0 signatures")
        return secret_key.sign(message).to_bytes()
    return secret_key.sign(message).to_text().encode("utf-8")


def encode(
    store: ObjectStorePort,
    secret_key: PrivateKey,
    object_id: str,
    version: SignatureVersion = SignatureVersion.current(),
) -> str:
    """Sign ``object_id`` and write the signature object into ``store``.

    Args:
        store: Object store receiving the new objects
        secret_key: Decrypted signify or minisign key
        object_id: Hex id of the object to sign
        version: Layout to write (``v1`` unless the legacy layout was requested)

    Returns:
        Id of the new signature object (a commit for ``v1``, a tree for ``v0``)

    Raises:
        UnsupportedObjectKind: If the target is not a blob, tree or commit, or is a
            commit and ``version`` is ``v0``
        IncompatibleKeyType: If a minisign key is used with ``v0``
    """
    target = store.get_object(object_id)
    if target.kind not in SIGNABLE_KINDS:
        raise UnsupportedObjectKind(object_id, target.kind.value)
    if version is SignatureVersion.V0 and target.kind is ObjectKind.COMMIT:
        raise UnsupportedObjectKind(object_id, target.kind.value)

    signature = serialize_signature(secret_key, bytes.fromhex(object_id), version)
    signature_blob = store.put_blob(signature)

    if version is SignatureVersion.V0:
        pointer_blob = store.put_blob(bytes.fromhex(object_id))
        signature_id = store.put_tree(
            [
                TreeEntry(name=OBJECT_ENTRY, mode=BLOB_MODE, id=pointer_blob),
                TreeEntry(name=SIGNATURE_ENTRY, mode=BLOB_MODE, id=signature_blob),
            ]
        )
        logger.debug("Encoded v0 signature tree %s over %s", signature_id, object_id)
        return signature_id

    entries = [
        TreeEntry(name=VERSION_ENTRY, mode=BLOB_MODE, id=store.put_blob(version.tag.encode())),
        TreeEntry(
            name=ALGORITHM_ENTRY,
            mode=BLOB_MODE,
            id=store.put_blob(secret_key.algorithm.tag.encode()),
        ),
        TreeEntry(name=SIGNATURE_ENTRY, mode=BLOB_MODE, id=signature_blob),
    ]
    parents: list[str] = []
    if target.kind is ObjectKind.COMMIT:
        parents.append(object_id)
    else:
        mode = TREE_MODE if target.kind is ObjectKind.TREE else BLOB_MODE
        entries.append(TreeEntry(name=OBJECT_ENTRY, mode=mode, id=object_id))

    tree_id = store.put_tree(entries)
    signature_id = store.put_commit(tree_id, parents, wrapper_message(object_id))
    logger.debug(
        "Encoded %s %s signature commit %s over %s %s",
        version.tag,
        secret_key.algorithm.tag,
        signature_id,
        target.kind.value,
        object_id,
    )
    return signature_id


def _required_entry(
    store: ObjectStorePort,
    tree: StoredObject,
    name: str,
    *,
    object_id: str,
) -> StoredObject:
    entry = tree.entries.get(name)
    if entry is None:
        raise MalformedSignatureObject(
            f"Failed to look-up {name!r} entry in the signature tree",
            object_id=object_id,
            field=name,
        )
    try:
        stored = store.get_object(entry.id)
    except ObjectLookupError as exc:
        raise MalformedSignatureObject(
            f"The {name!r} entry could not be retrieved",
            object_id=object_id,
            field=name,
        ) from exc
    if stored.kind is not ObjectKind.BLOB:
        raise MalformedSignatureObject(
            f"The {name!r} entry is a {stored.kind.value}, not a blob",
            object_id=object_id,
            field=name,
        )
    return stored


def _tag(blob: StoredObject) -> str:
    return blob.data.decode("utf-8", errors="replace")


def _decode_flat(store: ObjectStorePort, tree: StoredObject) -> FlatSignature:
    pointer = _required_entry(store, tree, OBJECT_ENTRY, object_id=tree.id)
    signature = _required_entry(store, tree, SIGNATURE_ENTRY, object_id=tree.id)
    return FlatSignature(
        id=tree.id,
        object_pointer=pointer.id,
        pointer_content=pointer.data,
        signature=signature.data,
    )


def _check_pointer(
    store: ObjectStorePort, pointer: str, expected: ObjectKind, *, object_id: str
) -> None:
    try:
        stored = store.get_object(pointer)
    except ObjectLookupError as exc:
        raise MalformedSignatureObject(
            f"The signed object {pointer} is missing from the repository",
            object_id=object_id,
            field=OBJECT_ENTRY,
        ) from exc
    if stored.kind is not expected:
        raise MalformedSignatureObject(
            f"The signed object {pointer} is a {stored.kind.value}, not a {expected.value}",
            object_id=object_id,
            field=OBJECT_ENTRY,
        )


def _decode_wrapped(store: ObjectStorePort, commit: StoredObject) -> WrappedSignature:
    if commit.tree is None:
        raise MalformedSignatureObject(
            "Signature commit has no tree", object_id=commit.id, field="tree"
        )
    tree = store.get_object(commit.tree)

    version = SignatureVersion.from_tag(
        _tag(_required_entry(store, tree, VERSION_ENTRY, object_id=commit.id)),
        object_id=commit.id,
    )
    algorithm = SignatureAlgorithm.from_tag(
        _tag(_required_entry(store, tree, ALGORITHM_ENTRY, object_id=commit.id)),
        object_id=commit.id,
    )
    signature = _required_entry(store, tree, SIGNATURE_ENTRY, object_id=commit.id)

    pointer_entry = tree.entries.get(OBJECT_ENTRY)
    if pointer_entry is not None:
        _check_pointer(store, pointer_entry.id, pointer_entry.kind, object_id=commit.id)
        object_pointer, via_parent = pointer_entry.id, False
    elif len(commit.parents) == 1:
        _check_pointer(store, commit.parents[0], ObjectKind.COMMIT, object_id=commit.id)
        object_pointer, via_parent = commit.parents[0], True
    else:
        raise MalformedSignatureObject(
            "No signed 'object' in the tree signature nor a single parent commit to be signed",
            object_id=commit.id,
            field=OBJECT_ENTRY,
        )

    return WrappedSignature(
        id=commit.id,
        version=version,
        algorithm=algorithm,
        object_pointer=object_pointer,
        via_parent=via_parent,
        signature=signature.data,
    )


def decode(store: ObjectStorePort, object_id: str) -> SignatureObject:
    """Read the signature object stored at ``object_id``.

    Trees decode as the flat ``v0`` layout, commits as the wrapped layout.

    Raises:
        ObjectLookupError: If the id is absent or names a blob or tag
        MalformedSignatureObject: If an entry is missing or has the wrong kind
        UnknownVersion: If the ``version`` tag is not recognized
        UnknownAlgorithm: If the ``algorithm`` tag is not recognized
    """
    stored = store.get_object(object_id)
    if stored.kind is ObjectKind.TREE:
        return _decode_flat(store, stored)
    if stored.kind is ObjectKind.COMMIT:
        return _decode_wrapped(store, stored)
    raise ObjectLookupError(
        f"Invalid object kind {stored.kind.value}, while loading tree signature "
        f"with oid={object_id}",
        revision=object_id,
    )
