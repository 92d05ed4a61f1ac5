"""
Merkle commitment module.

Provides ordered Merkle trees with domain-separated hashing and offline,
non-raising inclusion proof verification.
"""

from veritasor.merkle.tree import (
    MerkleTree,
    MerkleNode,
    MerkleProof,
    ProofStep,
    compute_merkle_root,
    hash_leaf,
    hash_leaf_data,
    hash_node,
    verify_proof,
)

__all__ = [
    "MerkleTree",
    "MerkleNode",
    "MerkleProof",
    "ProofStep",
    "compute_merkle_root",
    "hash_leaf",
    "hash_leaf_data",
    "hash_node",
    "verify_proof",
]
