import pytest

from meteor_rx.base.capture import PassCapture, PassDirection, PassSide
from meteor_rx.operators.astrodynamics.plots import PassPlotter

ISS_TLE = """ISS (ZARYA)
1 25544U 98067A   14020.93268519  .00009878  00000-0  18200-3 0  5082
2 25544  51.6498 109.4756 0003572  55.9686 274.8005 15.49815350868473
"""


@pytest.fixture
def iss_capture(tmp_path):
    tle_file = tmp_path / "stations.tle"
    tle_file.write_text(ISS_TLE)
    return PassCapture(
        sat_name="ISS (ZARYA)",
        filename_base="ISS-20140120",
        tle_file=tle_file,
        epoch_start=1390255200,
        capture_time=600,
        max_elevation=40,
        direction=PassDirection.SOUTHBOUND,
        side=PassSide.WEST,
    )


def test_compute_track(config, iss_capture):
    az, el = PassPlotter(config).compute_track(iss_capture)
    assert len(az) == len(el) == 61
    assert ((az >= 0) & (az < 360)).all()
    assert ((el >= -90) & (el <= 90)).all()


def test_unknown_satellite(config, iss_capture, tmp_path):
    with pytest.raises(ValueError):
        PassPlotter(config).load_satellite(iss_capture.tle_file, "METEOR-M2 3")


@pytest.mark.asyncio
async def test_plots_written(config, iss_capture, tmp_path):
    plotter = PassPlotter(config)
    az_el = await plotter.plot_az_el(iss_capture, tmp_path / "polar-azel.jpg")
    direction = await plotter.plot_direction(iss_capture, tmp_path / "polar-direction.png")
    assert az_el.stat().st_size > 0
    assert direction.stat().st_size > 0
