"""
Rafale de requêtes simultanées sur un endpoint de liste.

Au-delà de 10 requêtes SQL concurrentes, les requêtes excédentaires
attendent une connexion libre du pool: la latence moyenne augmente
mais aucune ne doit échouer.

    python load_burst.py sql 50
"""

import asyncio
import sys
import time

import httpx

BASE_URL = "http://localhost:3000"
ENDPOINTS = {
    "sql": "/api/sql/products",
    "nosql": "/api/nosql/products",
}


async def burst(backend: str, size: int):
    url = BASE_URL + ENDPOINTS[backend]
    print(f"[BURST] {size} x GET {url}")

    async with httpx.AsyncClient(timeout=30) as client:
        started = time.perf_counter()
        responses = await asyncio.gather(*(client.get(url) for _ in range(size)))
        elapsed = time.perf_counter() - started

    failures = [r for r in responses if r.status_code != 200]
    print(f"[BURST] total {elapsed:.2f}s, moyenne {elapsed / size * 1000:.0f}ms")
    print(f"[BURST] échecs: {len(failures)}/{size}")
    for response in failures[:5]:
        print(f"    {response.status_code} {response.json().get('message')}")
    return failures


if __name__ == "__main__":
    backend = sys.argv[1] if len(sys.argv) > 1 else "sql"
    size = int(sys.argv[2]) if len(sys.argv) > 2 else 50
    failures = asyncio.run(burst(backend, size))
    sys.exit(1 if failures else 0)
