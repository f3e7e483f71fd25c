"""Generation-info dialects (A1111 text, ComfyUI graphs)."""
