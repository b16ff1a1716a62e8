"""Plotly visualization functions for the tabletop pipeline"""

import numpy as np
import plotly.graph_objects as go

CLUSTER_COLORS = [
    "#e6194b", "#3cb44b", "#ffe119", "#4363d8", "#f58231",
    "#911eb4", "#42d4f4", "#f032e6", "#bfef45", "#fabed4",
    "#469990", "#dcbeff", "#9A6324", "#800000", "#aaffc3",
    "#808000", "#ffd8b1", "#000075", "#a9a9a9", "#ffffff",
]


def scatter_2d(points_list, names, colors, title, xlabel, ylabel, x_idx=0, y_idx=1):
    """Create a 2D scatter plot with multiple point sets."""
    fig = go.Figure()
    for pts, name, color in zip(points_list, names, colors):
        if len(pts) > 0:
            fig.add_trace(go.Scattergl(
                x=pts[:, x_idx], y=pts[:, y_idx],
                mode="markers",
                marker=dict(size=2, color=color, opacity=0.5),
                name=name,
            ))
    fig.update_layout(
        title=title,
        xaxis=dict(title=xlabel, scaleanchor="y"),
        yaxis=dict(title=ylabel),
        height=550,
        margin=dict(l=40, r=20, t=40, b=40),
    )
    return fig


def _hull_outline(hull):
    closed = np.vstack([hull.vertices, hull.vertices[:1]])
    return go.Scatter3d(
        x=closed[:, 0], y=closed[:, 1], z=closed[:, 2],
        mode="lines",
        line=dict(color="green", width=5),
        name=f"Hull ({len(hull)} vertices)",
    )


def scatter_3d_table_objects(table, objects, hull=None):
    """Create a 3D scatter plot showing table inliers, the hull and emitted objects."""
    fig = go.Figure()
    if len(table) > 0:
        fig.add_trace(go.Scatter3d(
            x=table[:, 0], y=table[:, 1], z=table[:, 2],
            mode="markers",
            marker=dict(size=1, color="blue", opacity=0.3),
            name=f"Table ({len(table):,})",
        ))
    if hull is not None and len(hull) > 0:
        fig.add_trace(_hull_outline(hull))
    for i, obj in enumerate(objects):
        color = CLUSTER_COLORS[i % len(CLUSTER_COLORS)]
        fig.add_trace(go.Scatter3d(
            x=obj.xyz[:, 0], y=obj.xyz[:, 1], z=obj.xyz[:, 2],
            mode="markers",
            marker=dict(size=2, color=color, opacity=0.8),
            name=f"Object {i} ({len(obj):,})",
        ))
    fig.update_layout(
        scene=dict(aspectmode="data"),
        height=600,
        margin=dict(l=0, r=0, t=30, b=0),
    )
    return fig


def scatter_3d_clusters(object_points, labels):
    """Create a 3D scatter plot with colored clusters."""
    fig = go.Figure()
    unique = np.unique(labels)
    for label in unique:
        mask = labels == label
        pts = object_points[mask]
        if label == -1:
            fig.add_trace(go.Scatter3d(
                x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
                mode="markers",
                marker=dict(size=1, color="gray", opacity=0.2),
                name=f"Dropped ({len(pts):,})",
            ))
        else:
            color = CLUSTER_COLORS[label % len(CLUSTER_COLORS)]
            fig.add_trace(go.Scatter3d(
                x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
                mode="markers",
                marker=dict(size=2, color=color, opacity=0.7),
                name=f"Cluster {label} ({len(pts):,})",
            ))
    fig.update_layout(
        scene=dict(aspectmode="data"),
        height=600,
        margin=dict(l=0, r=0, t=30, b=0),
    )
    return fig


def hull_footprint(hull, object_points=None):
    """
    Hull polygon in the table's own 2D basis, with object footprints on top.
    """
    fig = go.Figure()
    polygon = hull.polygon_2d
    closed = np.vstack([polygon, polygon[:1]])
    fig.add_trace(go.Scatter(
        x=closed[:, 0], y=closed[:, 1],
        mode="lines",
        fill="toself",
        fillcolor="rgba(0, 150, 255, 0.15)",
        line=dict(color="rgb(0, 150, 255)", width=2),
        name=f"Table ({hull.area:.3f} m²)",
    ))
    if object_points is not None and len(object_points) > 0:
        footprint = hull.to_2d(hull.plane.project(object_points))
        fig.add_trace(go.Scattergl(
            x=footprint[:, 0], y=footprint[:, 1],
            mode="markers",
            marker=dict(size=3, color="red", opacity=0.6),
            name=f"Objects ({len(footprint):,})",
        ))
    fig.update_layout(
        xaxis=dict(title="u (m)", scaleanchor="y"),
        yaxis=dict(title="v (m)"),
        height=500,
        margin=dict(l=40, r=20, t=20, b=40),
    )
    return fig
