# OrderBots — Robot Fleet Dispatch Simulation
# All time units are simulated MILLISECONDS; progress is a percentage (0–100).

# ── Order processing ──────────────────────────────────────────────────────────
PROCESSING_TIME = 10_000   # one order occupies a robot for 10 s
TICK_INTERVAL   = 100      # progress is reported every 100 ms → 100 steps
PROGRESS_MAX    = 100.0

# ── Fleet ─────────────────────────────────────────────────────────────────────
INITIAL_ROBOTS = 1         # the fleet is seeded with one idle robot
ORDER_ID_WIDTH = 4         # order labels are zero-padded: 0007

FLEET_NAME    = "OrderBots Kitchen Fleet"
FLEET_VERSION = "1.0"

# ── Scenario horizon ──────────────────────────────────────────────────────────
MINUTE_MS       = 60_000
SIM_MINUTES     = 15
SIM_DURATION    = SIM_MINUTES * MINUTE_MS    # 900 000 ms
SAMPLE_INTERVAL = 5_000                      # metrics snapshot every 5 s

# ── Scenario definitions ──────────────────────────────────────────────────────
# orders_per_minute  : mean Poisson arrival rate of new orders
# expedited_fraction : probability that a new order is expedited (VIP)
# initial_robots     : fleet size at t = 0
# fleet_changes      : (at_ms, delta); +1 adds a robot, -1 removes the newest
SCENARIOS = {
    "steady": {
        "label":              "Steady",
        "description":        "Balanced demand: 3 robots against ~15 orders/min",
        "orders_per_minute":  15,
        "expedited_fraction": 0.20,
        "initial_robots":     3,
        "fleet_changes":      [],
    },
    "rush": {
        "label":              "Lunch Rush",
        "description":        "Demand doubles; two extra robots join at minute 5",
        "orders_per_minute":  30,
        "expedited_fraction": 0.30,
        "initial_robots":     3,
        "fleet_changes":      [(5 * MINUTE_MS, +1), (5 * MINUTE_MS, +1)],
    },
    "downsizing": {
        "label":              "Downsizing",
        "description":        "Robots are withdrawn mid-shift, in-flight orders return to the queue",
        "orders_per_minute":  15,
        "expedited_fraction": 0.20,
        "initial_robots":     5,
        "fleet_changes":      [(4 * MINUTE_MS + 3_500, -1),
                               (8 * MINUTE_MS + 7_250, -1),
                               (12 * MINUTE_MS + 1_000, -1)],
    },
    "cancellation_storm": {
        "label":              "Cancellation Storm",
        "description":        "The newest robot is pulled and re-added every 45 s",
        "orders_per_minute":  12,
        "expedited_fraction": 0.25,
        "initial_robots":     3,
        "fleet_changes":      [
            (t * 45_000 + offset, delta)
            for t in range(1, SIM_DURATION // 45_000)
            for offset, delta in ((0, -1), (2_000, +1))
        ],
    },
}
