"""Cross-cutting helpers shared across features."""
