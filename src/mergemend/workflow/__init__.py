"""Graph workflow for the conflicts command."""
