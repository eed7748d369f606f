"""Similarity resolution and investor/target compatibility scoring."""
