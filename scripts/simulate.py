"""
Chaos Simulation Script

Fires concurrent order and payment traffic at a running API to check that
racing requests never double-settle an order.

Each simulated table opens an order, walks it to "served", then sends
several payments with different methods at the same time. Exactly one
must win; the rest must be rejected with 409 (conflict) or 400 (already
paid another way).

Run from project root: python scripts/simulate.py
"""

import asyncio
import sys
import random
import time
import argparse
from datetime import datetime
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8000"
TOTAL_TABLES = 20

MENU_ITEMS = [
    {"id": "sim-paneer-tikka", "name": "Paneer Tikka", "price": 250, "category": "appetizer"},
    {"id": "sim-veg-biryani", "name": "Veg Biryani", "price": 320, "category": "main"},
    {"id": "sim-butter-naan", "name": "Butter Naan", "price": 60, "category": "main"},
    {"id": "sim-gulab-jamun", "name": "Gulab Jamun", "price": 120, "category": "dessert"},
    {"id": "sim-masala-chai", "name": "Masala Chai", "price": 40, "category": "beverage"},
]
RACING_METHODS = ["cash", "upi"]


def generate_random_lines() -> list[dict]:
    """Generate random order lines."""
    return [
        {
            "menu_item_id": random.choice(MENU_ITEMS)["id"],
            "quantity": random.randint(1, 3),
        }
        for _ in range(random.randint(1, 4))
    ]


async def seed_menu(client: httpx.AsyncClient) -> None:
    """Make sure the simulation menu items exist."""
    response = await client.get(f"{API_BASE_URL}/api/menu")
    existing = {item["id"] for item in response.json()}

    for item in MENU_ITEMS:
        if item["id"] not in existing:
            await client.post(f"{API_BASE_URL}/api/menu", json=item)


# =============================================================================
# TABLE SIMULATION
# =============================================================================

async def simulate_table(
    client: httpx.AsyncClient,
    table_number: int
) -> dict[str, Any]:
    """Open, serve and pay one order with racing payments."""
    start_time = time.time()
    result: dict[str, Any] = {"table": table_number, "success": False}

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json={"table_number": table_number, "lines": generate_random_lines()},
            timeout=30.0
        )
        if response.status_code != 201:
            result["error"] = response.text[:100]
            return result

        order = response.json()
        order_id = order["order_id"]

        for status in ("preparing", "served"):
            response = await client.patch(
                f"{API_BASE_URL}/api/orders/{order_id}/status",
                json={"status": status},
            )
            if response.status_code != 200:
                result["error"] = f"{status}: {response.text[:100]}"
                return result

        payments = await asyncio.gather(*[
            client.patch(
                f"{API_BASE_URL}/api/orders/{order_id}/payment",
                json={"payment_method": method},
            )
            for method in RACING_METHODS
        ])
        codes = [p.status_code for p in payments]

        result.update({
            "order_id": order_id,
            "total": order["total"],
            "codes": codes,
            "winners": codes.count(200),
            "success": codes.count(200) == 1 and all(c in (200, 400, 409) for c in codes),
        })
        return result

    except Exception as e:
        result["error"] = str(e)[:100]
        return result

    finally:
        result["time"] = round(time.time() - start_time, 3)


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_tables: int = TOTAL_TABLES) -> dict[str, Any]:
    """
    Run the chaos simulation.

    Args:
        num_tables: Number of tables to simulate at once
    """
    print("=" * 70)
    print("🔥 CHAOS SIMULATION - RACING PAYMENTS")
    print("=" * 70)
    print(f"📋 Tables: {num_tables}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        await seed_menu(client)
        print("\n🚀 Firing tables...\n")
        results = await asyncio.gather(*[
            simulate_table(client, table) for table in range(1, num_tables + 1)
        ])

        report = (await client.get(f"{API_BASE_URL}/api/bills/daily-report")).json()

    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    double_paid = [r for r in results if r.get("winners", 0) > 1]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)

    print(f"\n✅ Settled exactly once: {len(successful)}/{num_tables}")
    print(f"❌ Failed: {len(failed)}/{num_tables}")
    print(f"🚨 Double-paid: {len(double_paid)}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        revenue = sum(r["total"] for r in successful)
        print(f"\n💰 Simulated revenue: {revenue}")
        print(f"📅 Daily report: {report.get('total_orders')} orders, sales {report.get('total_sales')}")

    if failed:
        print("\n⚠️  Failed Table Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Table {f['table']}: {f.get('error') or f.get('codes')}")

    print("=" * 70)

    return {
        "total": num_tables,
        "successful": len(successful),
        "failed": len(failed),
        "double_paid": len(double_paid),
        "total_time": total_time,
        "results": results
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Chaos Simulation Script")
    parser.add_argument("--tables", type=int, default=TOTAL_TABLES, help="Number of tables")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url
    summary = asyncio.run(run_simulation(args.tables))
    sys.exit(1 if summary["double_paid"] else 0)
