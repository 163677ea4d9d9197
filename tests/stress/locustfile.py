"""
Fleur Load Testing with Locust

Hammers one product with concurrent checkouts, disposals and stock receipts
and then checks that the shelf was never oversold.

Prepare a server (from backend/):
    python -m flask system init
    python -m flask users create --email staff@fleur.local --password "Staff123!" --role staff
    python -m flask run --port 5001

Run with:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001

Or headless:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001 \
           --users 20 --spawn-rate 5 --run-time 60s --headless

Pass thresholds:
- p95 response time < 500ms for reads
- p95 response time < 1000ms for writes
- No 5xx other than retryable 503
- Final stock == seeded + received - sold - disposed, and never negative
"""

import os
import random
import threading
import time
from typing import Dict, List, Optional

import httpx
from locust import HttpUser, task, between, events


# =============================================================================
# CONFIGURATION
# =============================================================================

TEST_USERS = [
    {"email": os.environ.get("FLEUR_ADMIN_EMAIL", "admin@fleur.local"),
     "password": os.environ.get("FLEUR_ADMIN_PASSWORD", "Admin123!")},
    {"email": os.environ.get("FLEUR_STAFF_EMAIL", "staff@fleur.local"),
     "password": os.environ.get("FLEUR_STAFF_PASSWORD", "Staff123!")},
]

SEED_QUANTITY = int(os.environ.get("FLEUR_SEED_QUANTITY", "200"))


# =============================================================================
# METRICS TRACKING
# =============================================================================

class MetricsCollector:
    """Collect per-endpoint timings and the stock ledger of the run."""

    def __init__(self):
        self.lock = threading.Lock()
        self.request_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.response_times: Dict[str, List[float]] = {}
        self.units_sold = 0
        self.units_disposed = 0
        self.units_received = 0
        self.rejected_short = 0

    def record(self, name: str, response_time: float, success: bool):
        with self.lock:
            self.request_counts[name] = self.request_counts.get(name, 0) + 1
            self.error_counts.setdefault(name, 0)
            if not success:
                self.error_counts[name] += 1
            self.response_times.setdefault(name, []).append(response_time)

    def add(self, field: str, amount: int):
        with self.lock:
            setattr(self, field, getattr(self, field) + amount)

    def get_summary(self) -> Dict:
        summary = {}
        for name, times in self.response_times.items():
            times = sorted(times)
            count = len(times)
            if count == 0:
                continue
            p95_idx = int(count * 0.95)
            summary[name] = {
                "count": self.request_counts[name],
                "errors": self.error_counts[name],
                "error_rate": self.error_counts[name] / self.request_counts[name] * 100,
                "avg_ms": sum(times) / count,
                "p95_ms": times[p95_idx] if p95_idx < count else times[-1],
            }
        return summary


metrics = MetricsCollector()
contended = {"product_id": None}


# =============================================================================
# SETUP
# =============================================================================

def _login(base_url: str, creds: Dict) -> Optional[str]:
    resp = httpx.post(f"{base_url}/api/auth/login", json=creds, timeout=10)
    if resp.status_code != 200:
        return None
    return resp.json()["token"]


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Create the contended product with a known starting quantity."""
    token = _login(environment.host, TEST_USERS[0])
    if not token:
        raise RuntimeError("Admin login failed; run 'flask system init' first")

    resp = httpx.post(
        f"{environment.host}/api/products",
        json={
            "name": "Hoa hồng tải thử",
            "color": "Đỏ",
            "unit": "Cành",
            "quantity": SEED_QUANTITY,
            "price": 20000,
            "cost_price": 12000,
        },
        headers={"Authorization": f"Bearer {token}"},
        timeout=10,
    )
    resp.raise_for_status()
    contended["product_id"] = resp.json()["product"]["id"]
    print(f"Seeded product {contended['product_id']} with {SEED_QUANTITY} units")


# =============================================================================
# USER BEHAVIORS
# =============================================================================

class FleurUser(HttpUser):
    """Base user that authenticates on start."""
    wait_time = between(0.1, 0.5)
    abstract = True

    token: Optional[str] = None

    def on_start(self):
        creds = random.choice(TEST_USERS)
        response = self.client.post("/api/auth/login", json=creds, name="auth/login")
        if response.status_code == 200:
            self.token = response.json().get("token")

    def get_headers(self) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def timed(self, name: str, method: str, path: str, ok=(200,), **kwargs):
        start = time.time()
        response = getattr(self.client, method)(path, headers=self.get_headers(), name=name, **kwargs)
        # 409 (short stock) and retryable 503 are correct answers under contention
        success = response.status_code in ok or response.status_code == 409 or (
            response.status_code == 503 and response.json().get("retryable")
        )
        metrics.record(name, (time.time() - start) * 1000, success)
        return response


class CounterUser(FleurUser):
    """Staff ringing up sales on the contended product."""
    weight = 4

    @task(6)
    def checkout(self):
        quantity = random.randint(1, 3)
        response = self.timed("invoices/create", "post", "/api/invoices", ok=(201,), json={
            "customer_name": "Khách lẻ",
            "items": [{"product_id": contended["product_id"], "quantity": quantity}],
        })
        if response.status_code == 201:
            metrics.add("units_sold", quantity)
        elif response.status_code == 409:
            metrics.add("rejected_short", 1)

    @task(2)
    def list_products(self):
        self.timed("products/list", "get", "/api/products")

    @task(1)
    def health_check(self):
        self.timed("system/health", "get", "/health")


class BackroomUser(FleurUser):
    """Staff disposing of wilted stock and receiving deliveries."""
    weight = 1

    @task(2)
    def dispose(self):
        response = self.timed(
            "products/dispose", "post", f"/api/products/{contended['product_id']}/dispose",
            ok=(201,), json={"quantity": 1, "reason": "Héo"},
        )
        if response.status_code == 201:
            metrics.add("units_disposed", 1)

    @task(1)
    def receive(self):
        quantity = random.randint(1, 5)
        response = self.timed("products/receive", "post", "/api/products/receive", ok=(201,), json={
            "supplier": "Vườn hoa Đà Lạt",
            "items": [{"product_id": contended["product_id"], "quantity": quantity, "unit_cost": 12000}],
        })
        if response.status_code == 201:
            metrics.add("units_received", quantity)


# =============================================================================
# EVENT HANDLERS
# =============================================================================

@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary and verify the stock ledger."""
    print("\n" + "=" * 80)
    print("LOAD TEST SUMMARY")
    print("=" * 80)

    print(f"\n{'Endpoint':<24} {'Count':>8} {'Errors':>8} {'Err%':>8} {'Avg(ms)':>10} {'P95(ms)':>10}")
    print("-" * 80)

    all_pass = True
    for name, stats in sorted(metrics.get_summary().items()):
        p95_threshold = 500 if name.endswith("list") or name.endswith("health") else 1000
        passed = stats["p95_ms"] < p95_threshold and stats["errors"] == 0
        all_pass = all_pass and passed
        print(f"{name:<24} {stats['count']:>8} {stats['errors']:>8} {stats['error_rate']:>7.2f}% "
              f"{stats['avg_ms']:>9.1f} {stats['p95_ms']:>9.1f} [{'PASS' if passed else 'FAIL'}]")

    token = _login(environment.host, TEST_USERS[0])
    resp = httpx.get(
        f"{environment.host}/api/products/{contended['product_id']}",
        headers={"Authorization": f"Bearer {token}"},
        timeout=10,
    )
    final = resp.json()["product"]["quantity"]
    expected = SEED_QUANTITY + metrics.units_received - metrics.units_sold - metrics.units_disposed

    print("-" * 80)
    print(f"Stock: seeded={SEED_QUANTITY} received={metrics.units_received} sold={metrics.units_sold} "
          f"disposed={metrics.units_disposed} short-rejections={metrics.rejected_short}")
    print(f"Final quantity {final}, expected {expected}")

    ledger_ok = final == expected and final >= 0
    if all_pass and ledger_ok:
        print("\n[PASS] All endpoints within thresholds; stock ledger balances")
    else:
        print("\n[FAIL] See rows above" + ("" if ledger_ok else "; STOCK LEDGER DOES NOT BALANCE"))
        environment.process_exit_code = 1

    print("=" * 80)
