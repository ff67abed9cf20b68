"""Client-side loading and relay-side feed conversion."""
