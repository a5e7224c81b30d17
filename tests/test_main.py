import main
from orderbots.config import SIM_MINUTES


def test_run_scenario_returns_kpis():
    sim, kpis = main.run_scenario("steady", seed=1)
    assert sim.env.now == SIM_MINUTES * 60_000
    assert kpis["total_orders"] == len(sim.metrics.orders)


def test_cli_single_scenario_without_charts(tmp_path):
    main.main(["--scenario", "steady", "--no-charts", "--report-dir", str(tmp_path)])
    assert list(tmp_path.iterdir()) == []


def test_cli_writes_dashboards(tmp_path):
    main.main(["--scenario", "downsizing", "--report-dir", str(tmp_path)])
    assert (tmp_path / "dashboard_downsizing.png").exists()
