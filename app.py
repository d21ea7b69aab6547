from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
import time

import numpy as np
import streamlit as st

# Local package
from voxverb import (
    # Config & materials
    SimConfig, SynthConfig, MaterialTable, MEDIA,
    # Sampling
    count_directions,
    # Metrics
    schroeder_edc, estimate_rt60_from_edc,
    # Audio
    wav_bytes,
)
from voxverb.caching import (
    bytes_hash, config_key, world_hash,
    shoebox_cached, world_from_mesh_cached, simulate_cached,
)
from voxverb.viz import (
    make_fig, add_source_receiver, add_ray_paths,
    ir_figure, band_energy_figure, outcome_table, spectrogram_figure,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("voxverb.app")

# ===== Streamlit setup =====
st.set_page_config(page_title="Voxel Reverb", layout="wide")

# ===== Style =====
st.markdown("""
<style>
:root{ --bg:#0d0f12; --panel:#12161c; --text:#e6edf3; --line:#2a2f36; --accent:#4bd0e0; }
html, body, [data-testid=stAppViewContainer], [data-testid=stHeader]{ background:var(--bg)!important; color:var(--text)!important; }
[data-testid=stSidebar]{ background:var(--panel)!important; color:var(--text)!important; box-shadow: inset 0 0 0 1px var(--line); }
.stButton>button, .stDownloadButton>button{ background:#141a22; color:var(--text); border:1px solid var(--line); border-radius:8px; }
.js-plotly-plot .colorbar text { fill: #e6edf3 !important; }
</style>
""", unsafe_allow_html=True)


def _run_with_progress(world_key, world, R, S, cfg: SimConfig, synth: SynthConfig, materials):
    """Run the cached pipeline off the script thread and poll its progress."""
    latest = {"p": None}
    bar = st.progress(0.0, text="Tracing rays...")

    def on_progress(p):
        latest["p"] = p

    with ThreadPoolExecutor(max_workers=1) as pool:
        fut = pool.submit(
            simulate_cached, world_key, world, tuple(R), tuple(S),
            config_key(cfg), config_key(synth),
            _materials=materials, _on_progress=on_progress,
        )
        while not fut.done():
            p = latest["p"]
            if p is not None:
                bar.progress(min(1.0, p.fraction),
                             text=f"Tracing rays... {p.processed:,} / {max(p.expected, p.submitted):,}")
            time.sleep(0.1)
        result, ir = fut.result()
    bar.progress(1.0, text="Done")
    return result, ir


# ===== Main UI =====
def main():
    st.title("Voxel Reverb - Acoustic Ray Tracing in a Block World")
    st.caption("Rays leave the receiver, bounce off voxel faces with per-band absorption, "
               "and every ray that passes the source becomes one tap of the impulse response.")

    materials = MaterialTable.builtin()
    blocks = sorted(materials.block_keys)

    with st.sidebar:
        with st.form("geom_form"):
            st.subheader("1) World")
            mode = st.radio("Geometry", ["Shoebox room", "Voxelize mesh"], index=0)
            c1, c2, c3 = st.columns(3)
            nx = c1.number_input("Width (x)", 2, 200, 12, 1)
            ny = c2.number_input("Height (y)", 2, 200, 6, 1)
            nz = c3.number_input("Depth (z)", 2, 200, 10, 1)
            wall = st.selectbox("Walls", blocks, index=blocks.index("stone"))
            floor = st.selectbox("Floor", blocks, index=blocks.index("oak_planks"))
            ceiling = st.selectbox("Ceiling", blocks, index=blocks.index("plaster"))
            f = st.file_uploader("Mesh (STL/OBJ/PLY/GLB)", type=["stl", "obj", "ply", "glb"])
            pitch = st.number_input("Voxel size (mesh units)", 0.001, 1000.0, 1.0, 0.1)
            mesh_block = st.selectbox("Mesh block", blocks, index=blocks.index("concrete"))
            st.form_submit_button("Apply world", use_container_width=True)

        with st.form("pos_form"):
            st.subheader("2) Positions (y up; mesh units for a voxelized mesh)")
            Rx = st.number_input("Receiver X", value=3.5); Ry = st.number_input("Receiver Y", value=2.5); Rz = st.number_input("Receiver Z", value=3.5)
            Sx = st.number_input("Source X", value=9.5); Sy = st.number_input("Source Y", value=2.5); Sz = st.number_input("Source Z", value=7.5)
            st.form_submit_button("Apply positions", use_container_width=True)

        with st.form("sim_form"):
            st.subheader("3) Ray sweep")
            pitch_step = st.slider("Pitch step (deg)", 0.1, 30.0, 5.0, 0.1)
            density = st.select_slider("Yaw density scale", [0.001, 0.002, 0.005, 0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 1.0], value=0.01)
            medium = st.selectbox("Medium", sorted(MEDIA), index=sorted(MEDIA).index("air"))
            margin = st.slider("Source capture radius", 0.1, 3.0, 1.0, 0.1)
            diffuse = st.select_slider("Diffuse rays per hit", [0, 16, 32, 64], value=0)
            seed = st.number_input("Random seed", 0, None, 0, 1)
            st.form_submit_button("Apply sweep", use_container_width=True)

        run = st.button("Run simulation", type="primary", use_container_width=True)

    # --- World ---
    try:
        if mode == "Voxelize mesh":
            if f is None:
                st.info("Upload a mesh to voxelize, or switch to the shoebox room.")
                st.stop()
            data = f.getvalue()
            ext = f.name.rsplit(".", 1)[-1].lower()
            world = world_from_mesh_cached(bytes_hash(data), data, ext, float(pitch), str(mesh_block), True)
        else:
            world = shoebox_cached((int(nx), int(ny), int(nz)), str(wall), str(floor), str(ceiling))
    except Exception as e:
        st.error(f"Failed to build world: {e}")
        st.stop()

    # identity for shoebox rooms; mesh coordinates for voxelized meshes
    R = world.to_grid(np.array([Rx, Ry, Rz], dtype=float))
    S = world.to_grid(np.array([Sx, Sy, Sz], dtype=float))
    cfg = SimConfig(
        medium=str(medium),
        target_margin=float(margin),
        pitch_step_deg=float(pitch_step),
        density_scale=float(density),
        diffuse_rays=int(diffuse),
        rng_seed=int(seed),
        record_paths=True,
    )
    synth = SynthConfig(fs=int(cfg.fs), rng_seed=int(seed))

    st.subheader("Scene preview")
    fig = make_fig(world)
    add_source_receiver(fig, S, R)
    st.plotly_chart(fig, use_container_width=True)
    counts = world.block_counts()
    st.caption(f"Grid {world.shape} · Solid voxels {world.solid_count():,} · "
               f"Initial rays {count_directions(cfg):,} · Blocks {counts}")

    # --- Run ---
    if run:
        try:
            result, ir = _run_with_progress(world_hash(world), world, R, S, cfg, synth, materials)
        except Exception as e:
            logger.exception("Simulation failed")
            st.error(f"Simulation failed: {e}")
            st.stop()
        st.session_state.update({"result": result, "ir": ir, "S": S, "R": R})
        st.success(f"Tracing complete · {result.hits:,} rays reached the source in {result.elapsed_s:.1f} s")

    result = st.session_state.get("result")
    ir = st.session_state.get("ir")
    if result is None:
        st.info("Press **Run simulation** to trace the room.")
        return

    st.subheader("Ray outcomes")
    col1, col2 = st.columns(2)
    with col1:
        st.dataframe(outcome_table(result.outcomes), use_container_width=True)
    with col2:
        st.plotly_chart(band_energy_figure(result.matrix.total_energy()), use_container_width=True)

    if ir is None:
        st.warning("No ray reached the source: nothing to synthesise. "
                   "Try a larger capture radius or a denser sweep.")
        return

    st.subheader("Impulse response")
    rt60 = estimate_rt60_from_edc(schroeder_edc(ir.combined), ir.fs)
    rt_text = f"RT60 ≈ {rt60:.2f} s" if rt60 is not None else "RT60 could not be estimated"
    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(ir_figure(ir, f"Impulse Response ({rt_text})"), use_container_width=True)
    with col2:
        st.plotly_chart(spectrogram_figure(ir.combined, ir.fs, "IR Spectrogram"), use_container_width=True)

    wav = wav_bytes(ir.combined, ir.fs)
    st.audio(wav, format="audio/wav")
    st.download_button("Download IR (WAV)", data=wav_bytes(ir.combined, ir.fs),
                       file_name="impulse_response.wav", mime="audio/wav")

    if result.paths:
        st.subheader("Ray-path preview (rays that reached the source)")
        fig2 = make_fig(world, opacity=0.1)
        add_source_receiver(fig2, st.session_state["S"], st.session_state["R"])
        add_ray_paths(fig2, result.paths)
        st.plotly_chart(fig2, use_container_width=True)


if __name__ == "__main__":
    main()
