"""Backend adapters: PostgREST over httpx, and an offline stand-in."""
