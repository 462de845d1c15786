"""Pure training, attendance and role logic."""
