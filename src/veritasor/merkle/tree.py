"""
Merkle Tree Implementation

Commits an ordered batch of attestation leaves to a single root digest and
produces inclusion proofs that can be checked offline.

Key features:
- SHA-256 based Merkle tree
- Domain separation for leaves (0x00) vs internal nodes (0x01)
- Order-preserving: leaf position is part of the commitment
- Odd node at any level is carried up unchanged (never duplicated)
- Pure, non-raising proof verification

ODD-NODE RULE:
    When a level has an odd number of nodes, the last node is promoted to
    the next level as-is. It is neither re-hashed nor paired with a copy of
    itself. Construction, proof generation and verification all derive the
    path from ``_proof_path`` so the rule cannot drift between them.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from veritasor.protocol.enums import ProofPosition
from veritasor.protocol.errors import EmptyInputError, IndexOutOfRangeError

Leaf = Union[bytes, bytearray, memoryview, str]

LEAF_PREFIX = b"\x00"
NODE_PREFIX = b"\x01"

_DIGEST_RE = re.compile(r"[0-9a-f]{64}")


# ===========================================================================
# Hash Functions
# ===========================================================================


def _as_bytes(leaf: Leaf) -> bytes:
    if isinstance(leaf, str):
        return leaf.encode("utf-8")
    if isinstance(leaf, (bytes, bytearray, memoryview)):
        return bytes(leaf)
    raise TypeError(f"Leaf must be bytes or str, got {type(leaf).__name__}")


def hash_leaf(data: bytes) -> str:
    """
    Hash a leaf node.

    Leaf nodes are prefixed with 0x00 so a leaf can never be mistaken for an
    internal node.
    """
    hasher = hashlib.sha256()
    hasher.update(LEAF_PREFIX)
    hasher.update(data)
    return hasher.hexdigest()


def hash_node(left: str, right: str) -> str:
    """
    Hash an internal node from two hex child digests, left then right.

    Internal nodes are prefixed with 0x01.
    """
    hasher = hashlib.sha256()
    hasher.update(NODE_PREFIX)
    hasher.update(bytes.fromhex(left))
    hasher.update(bytes.fromhex(right))
    return hasher.hexdigest()


def hash_leaf_data(leaf: Leaf) -> str:
    """
    Hash data as a Merkle leaf.

    Use this function to compute the leaf digest for verification.
    """
    return hash_leaf(_as_bytes(leaf))


# ===========================================================================
# Merkle Node
# ===========================================================================


@dataclass(frozen=True)
class MerkleNode:
    """
    A node in a Merkle tree.

    Attributes:
        hash: SHA-256 digest of this node (hex)
        left: Left child (None for leaves)
        right: Right child (None for leaves)
        index: Leaf index (only for leaves)
    """
    hash: str
    left: Optional["MerkleNode"] = None
    right: Optional["MerkleNode"] = None
    index: Optional[int] = None

    def is_leaf(self) -> bool:
        return self.left is None and self.right is None


# ===========================================================================
# Merkle Proof
# ===========================================================================


@dataclass(frozen=True)
class ProofStep:
    """
    One sibling on the path from a leaf to the root.

    Attributes:
        sibling: Hex digest of the sibling node
        position: Side the sibling sits on relative to the path node
    """
    sibling: str
    position: ProofPosition

    def to_dict(self) -> Dict[str, Any]:
        return {"sibling": self.sibling, "position": ProofPosition(self.position).value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProofStep":
        return cls(sibling=data["sibling"], position=ProofPosition(data["position"]))


@dataclass(frozen=True)
class MerkleProof:
    """
    Inclusion proof for a leaf in a Merkle tree.

    Steps are ordered from the leaf up to (but excluding) the root. A leaf
    that is carried up at an odd level has no step for that level, so proofs
    for such leaves are shorter than the tree height.

    Attributes:
        leaf_index: Position of the proved leaf
        leaf_count: Number of leaves in the tree the proof was taken from
        steps: Sibling digests and their positions
    """
    leaf_index: int
    leaf_count: int
    steps: Tuple[ProofStep, ...] = ()

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __getitem__(self, item: int) -> ProofStep:
        return self.steps[item]

    @property
    def siblings(self) -> List[str]:
        return [step.sibling for step in self.steps]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "leafIndex": self.leaf_index,
            "leafCount": self.leaf_count,
            "steps": [step.to_dict() for step in self.steps],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MerkleProof":
        return cls(
            leaf_index=data["leafIndex"],
            leaf_count=data["leafCount"],
            steps=tuple(ProofStep.from_dict(s) for s in data.get("steps", [])),
        )


# ===========================================================================
# Path derivation (shared by construction, proofs and verification)
# ===========================================================================


def _proof_path(index: int, leaf_count: int) -> List[Tuple[int, int, ProofPosition]]:
    """
    Walk from leaf ``index`` to the root of a ``leaf_count``-leaf tree.

    Returns ``(level, sibling_index, position)`` for every level at which the
    path node has a sibling. Levels where the node is carried up are skipped.
    """
    path: List[Tuple[int, int, ProofPosition]] = []
    level = 0
    width = leaf_count
    current = index

    while width > 1:
        if current % 2 == 1:
            path.append((level, current - 1, ProofPosition.LEFT))
        elif current + 1 < width:
            path.append((level, current + 1, ProofPosition.RIGHT))
        # else: last node of an odd level, carried up unchanged

        current //= 2
        width = (width + 1) // 2
        level += 1

    return path


def _next_level(nodes: Sequence[MerkleNode]) -> List[MerkleNode]:
    parents: List[MerkleNode] = []
    for i in range(0, len(nodes), 2):
        left = nodes[i]
        if i + 1 >= len(nodes):
            parents.append(left)
            continue
        right = nodes[i + 1]
        parents.append(MerkleNode(hash=hash_node(left.hash, right.hash), left=left, right=right))
    return parents


def _build_levels(leaves: Sequence[MerkleNode]) -> List[List[MerkleNode]]:
    levels = [list(leaves)]
    while len(levels[-1]) > 1:
        levels.append(_next_level(levels[-1]))
    return levels


# ===========================================================================
# Merkle Tree
# ===========================================================================


class MerkleTree:
    """
    Immutable Merkle tree over an ordered sequence of leaves.

    The root is a pure function of the ordered leaves: building twice from
    the same sequence yields the same root, and swapping any two leaves
    changes it. A tree is never mutated; build a new one when leaves change.

    Usage:
        tree = MerkleTree(["a", "b", "c"])
        proof = tree.get_proof(1)
        assert verify_proof("b", proof, tree.root, 1)
    """

    def __init__(self, leaves: Sequence[Leaf]):
        items = list(leaves)
        if not items:
            raise EmptyInputError()

        self._leaves: Tuple[MerkleNode, ...] = tuple(
            MerkleNode(hash=hash_leaf(_as_bytes(leaf)), index=i)
            for i, leaf in enumerate(items)
        )
        self._levels: Tuple[Tuple[MerkleNode, ...], ...] = tuple(
            tuple(level) for level in _build_levels(self._leaves)
        )
        self._root: MerkleNode = self._levels[-1][0]

    @classmethod
    def build(cls, leaves: Sequence[Leaf]) -> "MerkleTree":
        return cls(leaves)

    @property
    def root_node(self) -> MerkleNode:
        return self._root

    @property
    def root(self) -> str:
        return self._root.hash

    def get_root(self) -> str:
        return self._root.hash

    @property
    def leaf_count(self) -> int:
        return len(self._leaves)

    @property
    def height(self) -> int:
        return len(self._levels) - 1

    @property
    def leaf_hashes(self) -> List[str]:
        return [leaf.hash for leaf in self._leaves]

    @property
    def levels(self) -> List[List[str]]:
        """Digests per level, leaves first, root last."""
        return [[node.hash for node in level] for level in self._levels]

    def get_leaf_hash(self, index: int) -> str:
        self._check_index(index)
        return self._leaves[index].hash

    def get_proof(self, index: int) -> MerkleProof:
        """
        Get the inclusion proof for the leaf at ``index``.

        Raises:
            IndexOutOfRangeError: If index is outside [0, leaf_count)
        """
        self._check_index(index)

        steps = tuple(
            ProofStep(sibling=self._levels[level][sibling].hash, position=position)
            for level, sibling, position in _proof_path(index, self.leaf_count)
        )
        return MerkleProof(leaf_index=index, leaf_count=self.leaf_count, steps=steps)

    def _check_index(self, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int):
            raise IndexOutOfRangeError(f"Leaf index must be an integer, got {index!r}")
        if index < 0 or index >= len(self._leaves):
            raise IndexOutOfRangeError(
                f"Leaf index {index} out of range [0, {len(self._leaves)})"
            )

    @staticmethod
    def verify_proof(leaf: Leaf, proof: MerkleProof, root: str, index: int) -> bool:
        return verify_proof(leaf, proof, root, index)

    def __len__(self) -> int:
        return len(self._leaves)

    def __repr__(self) -> str:
        return f"MerkleTree(leaf_count={self.leaf_count}, root={self.root[:16]}...)"


# ===========================================================================
# Verification Functions
# ===========================================================================


def verify_proof(leaf: Leaf, proof: MerkleProof, root: str, index: int) -> bool:
    """
    Verify that ``leaf`` sits at ``index`` under ``root``.

    Needs no tree instance. The proof's length and sibling positions must
    match the path implied by ``(index, proof.leaf_count)``; any mismatch,
    malformed digest or wrong type yields False. Never raises.
    """
    try:
        if not isinstance(proof, MerkleProof):
            return False
        if isinstance(index, bool) or not isinstance(index, int):
            return False
        if not isinstance(proof.leaf_count, int) or isinstance(proof.leaf_count, bool):
            return False
        if index != proof.leaf_index or not 0 <= index < proof.leaf_count:
            return False
        if not isinstance(root, str) or not _DIGEST_RE.fullmatch(root):
            return False

        expected = _proof_path(index, proof.leaf_count)
        if len(expected) != len(proof.steps):
            return False

        current = hash_leaf(_as_bytes(leaf))
        for step, (_, _, position) in zip(proof.steps, expected):
            if not isinstance(step.sibling, str) or not _DIGEST_RE.fullmatch(step.sibling):
                return False
            if ProofPosition(step.position) is not position:
                return False
            if position is ProofPosition.LEFT:
                current = hash_node(step.sibling, current)
            else:
                current = hash_node(current, step.sibling)

        return current == root
    except (ValueError, TypeError, AttributeError):
        return False


def compute_merkle_root(leaf_hashes: Sequence[str]) -> str:
    """
    Compute the Merkle root from already-hashed leaves.

    Applies the same odd-node rule as MerkleTree. Use hash_leaf_data to
    produce the leaf digests.
    """
    if len(leaf_hashes) == 0:
        raise EmptyInputError("Cannot compute root with no leaves")

    nodes = [MerkleNode(hash=h, index=i) for i, h in enumerate(leaf_hashes)]
    return _build_levels(nodes)[-1][0].hash
