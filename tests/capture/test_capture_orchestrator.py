from pathlib import Path

import pytest

from meteor_rx.base.capture import StagingKind, StagingLocation
from meteor_rx.operators.capture.api import CaptureOrchestrator, CaptureState
from meteor_rx.operators.imaging.api import ImagePostProcessor
from meteor_rx.operators.publisher.annotation import AnnotationFields
from meteor_rx.operators.receiver.api import resolve_receiver_profile

from conftest import make_config


def meteordemod_output(cmd, cwd):
    for name in ("spread_321_2024-03-15-10-15-00.jpg", "equidistant_321_2024-03-15-10-15-00.jpg"):
        (Path(cwd) / name).write_bytes(b"jpg")
    (Path(cwd) / "spread_321.gcp").write_text("gcp")
    (Path(cwd) / "channel_1.bmp").write_bytes(b"bmp")


def satdump_output(cmd, cwd):
    work = Path(cmd[3])
    msu = work / "MSU-MR"
    msu.mkdir(parents=True)
    for name in ("msu_mr_rgb_321_corrected.png", "rgb_msu_mr_221_projected.png", "MSU-MR-1.png"):
        (msu / name).write_bytes(b"png")
    for name in ("satdump.logs", "meteor_m2-x_lrpt.cadu", "dataset.json"):
        (work / name).write_text("x")


def orchestrator(config, runner):
    return CaptureOrchestrator(config, runner, ImagePostProcessor(config, runner), settle_time=0)


def annotation(config, capture):
    return AnnotationFields.from_capture(capture, config, sun_elevation=12)


def ram(config):
    return StagingLocation(StagingKind.RAM, config.paths.ramfs_audio)


@pytest.mark.asyncio
async def test_rtl_fm_mode(tmp_path, runner, capture):
    config = make_config(tmp_path, receiver={"mode": "rtl_fm"}, features={"produce_spectrogram": True})
    runner.on("meteordemod", meteordemod_output)
    capture_orchestrator = orchestrator(config, runner)

    result = await capture_orchestrator.run(
        capture, resolve_receiver_profile("rtlsdr"), ram(config), annotation(config, capture), flip=True
    )

    base = capture.filename_base
    audio = config.paths.ramfs_audio / f"{base}.wav"
    images = config.paths.image_output
    assert runner.tools_called()[:4] == ["record_rtl_fm", "spectrogram", "thumbnail", "meteordemod"]
    assert runner.calls[0] == ["record_rtl_fm", "900", str(audio)]
    assert runner.calls[1] == [
        "spectrogram",
        str(audio),
        str(images / f"{base}-spectrogram.png"),
        "METEOR-M2 3",
        annotation(config, capture).spectrogram_text(),
    ]
    assert runner.calls[3] == [
        "meteordemod", "-m", "oqpsk", "-diff", "1", "-s", "72000", "-sat", "METEOR-M-2-3",
        "-t", str(capture.tle_file), "-f", "jpg", "-i", str(audio),
    ]
    assert len(runner.calls_to("convert")) == 1
    assert result.has_spectrogram is True
    assert result.push_files == [images / f"{base}-equidistant_321.jpg", images / f"{base}-spread_321.jpg"]
    assert not audio.exists()
    assert not capture_orchestrator.work_dir(capture).exists()
    assert capture_orchestrator.state_history == [
        CaptureState.SELECT_MODE,
        CaptureState.RECORD,
        CaptureState.DEMODULATE,
        CaptureState.CLEANUP,
        CaptureState.DONE,
    ]


@pytest.mark.asyncio
async def test_gnuradio_mode_80k_keeps_audio(tmp_path, runner, capture):
    config = make_config(
        tmp_path,
        receiver={"mode": "gnuradio", "interleaving_80k": True, "delete_audio": False},
        features={"produce_spectrogram": True},
    )
    runner.on("meteordemod", meteordemod_output)

    result = await orchestrator(config, runner).run(
        capture, resolve_receiver_profile("rtlsdr"), ram(config), annotation(config, capture)
    )

    assert "spectrogram" not in runner.tools_called()
    assert runner.calls[0][0] == "record_gnuradio"
    assert runner.calls_to("meteordemod")[0][5:9] == ["-int", "1", "-s", "80000"]
    assert result.has_spectrogram is False
    assert len(result.push_files) == 2
    assert (config.paths.audio_output / f"{capture.filename_base}.wav").exists()
    assert not (config.paths.ramfs_audio / f"{capture.filename_base}.wav").exists()


@pytest.mark.asyncio
async def test_disk_staged_audio_stays(tmp_path, runner, capture):
    config = make_config(tmp_path, receiver={"mode": "rtl_fm", "delete_audio": False})
    staging = StagingLocation(StagingKind.DISK, config.paths.audio_output)

    await orchestrator(config, runner).run(
        capture, resolve_receiver_profile("rtlsdr"), staging, annotation(config, capture)
    )

    assert (config.paths.audio_output / f"{capture.filename_base}.wav").exists()


@pytest.mark.asyncio
async def test_satdump_mode(tmp_path, runner, capture):
    config = make_config(tmp_path, receiver={"mode": "satdump", "gain": 38.6, "sdr_device_id": 1})
    runner.on("satdump", satdump_output)
    capture_orchestrator = orchestrator(config, runner)
    work = capture_orchestrator.work_dir(capture)

    result = await capture_orchestrator.run(
        capture, resolve_receiver_profile("rtlsdr"), ram(config), annotation(config, capture), flip=True
    )

    assert runner.calls[0] == [
        "satdump", "live", "meteor_m2-x_lrpt", str(work), "--source", "rtlsdr", "--samplerate", "1.024e6",
        "--frequency", "137.9e6", "--source_id", "1", "--gain", "38.6", "--timeout", "900", "--finish_processing",
    ]
    images = config.paths.image_output
    base = capture.filename_base
    assert result.push_files == [images / f"{base}-321_corrected.jpg", images / f"{base}-221_projected.jpg"]
    assert runner.calls_to("convert") == [
        ["convert", "-rotate", "180", str(work / "MSU-MR" / "321_corrected.png"), str(work / "MSU-MR" / "321_corrected.png")]
    ]
    assert not work.exists()


@pytest.mark.asyncio
async def test_satdump_airspy_uses_general_gain(tmp_path, runner, capture):
    config = make_config(tmp_path, receiver={"mode": "satdump", "type": "airspy_mini", "interleaving_80k": True})
    capture_orchestrator = orchestrator(config, runner)

    result = await capture_orchestrator.run(
        capture, resolve_receiver_profile("airspy_mini"), ram(config), annotation(config, capture)
    )

    cmd = runner.calls[0]
    assert cmd[2] == "meteor_m2-x_lrpt_80k"
    assert cmd[5:8] == ["airspy", "--samplerate", "3e6"]
    assert cmd[10:12] == ["--general_gain", "0"]
    assert "--source_id" not in cmd
    assert result.push_files == []


@pytest.mark.asyncio
async def test_unknown_mode(tmp_path, runner, capture):
    config = make_config(tmp_path, receiver={"mode": "sdrangel"})
    capture_orchestrator = orchestrator(config, runner)

    result = await capture_orchestrator.run(
        capture, resolve_receiver_profile("rtlsdr"), ram(config), annotation(config, capture)
    )

    assert result is None
    assert runner.calls == []
    assert capture_orchestrator.state_history == [CaptureState.SELECT_MODE]
