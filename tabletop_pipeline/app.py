"""Streamlit UI for inspecting the tabletop pipeline on one frame"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import streamlit as st

from tabletop_pipeline.data_loader import load_frame
from tabletop_pipeline.emitter import CollectingPublisher
from tabletop_pipeline.pipeline import PipelineParams, FrameResult, FrameStatus, process_frame
from tabletop_pipeline.synthetic import make_tabletop_frame, make_noise_frame
from tabletop_pipeline.visualizations import (
    scatter_2d,
    scatter_3d_table_objects,
    scatter_3d_clusters,
    hull_footprint,
)

SAMPLES = {
    "Synthetic: 3 objects": lambda: make_tabletop_frame(n_blobs=3)[0],
    "Synthetic: 4 objects": lambda: make_tabletop_frame(n_blobs=4)[0],
    "Synthetic: no table": lambda: make_noise_frame(),
}

STATUS_MESSAGES = {
    FrameStatus.EMITTED: "Objects emitted",
    FrameStatus.NO_TABLE: "Table has too few inliers",
    FrameStatus.DEGENERATE_HULL: "Table inliers do not span a polygon",
    FrameStatus.INSUFFICIENT_CLUSTERS: "Not enough clusters on the table",
}


def get_params_from_sidebar() -> PipelineParams:
    """Render parameter controls in sidebar and return PipelineParams."""
    with st.popover("Range filter", use_container_width=True):
        z_min, z_max = st.slider(
            "Depth band (m)",
            0.0, 5.0, (0.0, 1.5), 0.05,
        )
        k = st.slider(
            "Normal neighbors k",
            3, 50, 10,
        )

    with st.popover("Table (RANSAC)", use_container_width=True):
        max_iter = st.slider(
            "Max iterations",
            10, 2000, 500, 10,
        )
        sac_distance = st.slider(
            "Distance threshold (larger = thicker table)",
            0.005, 0.1, 0.03, 0.005,
        )
        normal_weight = st.slider(
            "Normal distance weight",
            0.0, 1.0, 0.1, 0.05,
        )
        eps_angle = st.slider(
            "Max tilt from axis (deg)",
            1.0, 45.0, 15.0, 1.0,
        )
        min_inliers = st.number_input(
            "Min table inliers",
            0, 100000, 100,
        )

    with st.popover("Objects", use_container_width=True):
        min_height, max_height = st.slider(
            "Height above table (m)",
            0.0, 1.0, (0.01, 0.4), 0.01,
        )
        tolerance = st.slider(
            "Cluster tolerance (larger = merges nearby objects)",
            0.005, 0.2, 0.03, 0.005,
        )
        min_size = st.number_input(
            "Min cluster size",
            1, 10000, 100,
        )
        nr_cluster = st.number_input(
            "Objects expected",
            1, 20, 4,
        )

    return PipelineParams(
        z_min_limit=z_min,
        z_max_limit=z_max,
        k=k,
        max_iter=max_iter,
        sac_distance=sac_distance,
        normal_distance_weight=normal_weight,
        eps_angle=eps_angle,
        min_table_inliers=int(min_inliers),
        cluster_min_height=min_height,
        cluster_max_height=max_height,
        object_cluster_tolerance=tolerance,
        object_cluster_min_size=int(min_size),
        nr_cluster=int(nr_cluster),
        seed=0,
    )


def render_filter_tab(r: FrameResult):
    """Render range filter tab content."""
    normal_gaps = r.normals.gap_count if r.normals is not None else 0
    st.caption(
        f"Raw: **{r.raw_count:,}** pts | "
        f"Filtered: **{r.filtered_count:,}** pts | "
        f"Without normal: **{normal_gaps:,}** pts"
    )
    fig = scatter_2d(
        [r.filtered.xyz],
        ["Filtered"],
        ["#3cb44b"],
        "After Range Filter",
        "X (m)", "Y (m)",
    )
    st.plotly_chart(fig, use_container_width=True)


def render_table_tab(r: FrameResult):
    """Render table segmentation tab content."""
    if r.hull is None:
        st.warning("No table found in this frame.")
        return
    st.caption(
        f"Plane: `{r.plane_model.equation_string}` | "
        f"Inliers: **{len(r.table_inliers):,}** | "
        f"Hull vertices: **{len(r.hull)}** | "
        f"Area: **{r.hull.area:.3f} m²**"
    )
    object_points = r.filtered.xyz[r.object_indices]
    st.plotly_chart(hull_footprint(r.hull, object_points), use_container_width=True)


def render_clusters_tab(r: FrameResult):
    """Render clusters tab content."""
    if r.clusters is None:
        st.warning("Clustering did not run for this frame.")
        return
    st.caption(f"Cluster sizes in discovery order: {r.clusters.cluster_sizes}")
    fig = scatter_3d_clusters(r.filtered.xyz[r.object_indices], r.clusters.labels)
    st.plotly_chart(fig, use_container_width=True)


def render_3d_tab(r: FrameResult):
    """Render full 3D view tab content."""
    table = r.filtered.xyz[r.table_inliers]
    fig = scatter_3d_table_objects(table, r.objects, r.hull)
    st.plotly_chart(fig, use_container_width=True)


def main():
    st.set_page_config(page_title="Tabletop Pipeline", layout="wide")
    st.title("Tabletop Pipeline")

    with st.sidebar:
        st.header("Input")
        sample_name = st.selectbox("Point cloud", list(SAMPLES.keys()) + ["File..."])
        file_path = None
        if sample_name == "File...":
            file_path = st.text_input("Frame path (.pcd, .txt, .npy)")

        st.header("Parameters")
        params = get_params_from_sidebar()

        run_button = st.button("Run Frame", type="primary", use_container_width=True)

    # Run pipeline
    if run_button:
        if file_path is not None:
            path = Path(file_path)
            if not path.exists():
                st.error(f"File not found: {path}")
                return
            cloud = load_frame(path)
        else:
            cloud = SAMPLES[sample_name]()

        with st.spinner("Running pipeline..."):
            publisher = CollectingPublisher()
            result = process_frame(cloud, params, publisher=publisher)
            st.session_state["frame_result"] = result

    # Display results
    if "frame_result" not in st.session_state:
        st.info("Configure parameters in the sidebar and click **Run Frame** to begin.")
        return

    r = st.session_state["frame_result"]

    col1, col2, col3 = st.columns(3)
    col1.metric("Status", STATUS_MESSAGES[r.status])
    col2.metric("Clusters", r.num_clusters)
    col3.metric("Emitted", len(r.objects))
    if r.error is not None:
        st.error(str(r.error))

    tab_filter, tab_table, tab_cluster, tab_3d = st.tabs(
        ["Range Filter", "Table", "Clusters", "Full 3D View"]
    )

    with tab_filter:
        render_filter_tab(r)
    with tab_table:
        render_table_tab(r)
    with tab_cluster:
        render_clusters_tab(r)
    with tab_3d:
        render_3d_tab(r)


if __name__ == "__main__":
    main()
