"""GLSL sources for circular, optionally depth-attenuated point sprites."""

from __future__ import annotations

MIN_POINT_SIZE = 1.0
MAX_POINT_SIZE = 64.0
DEPTH_PROXY_EPSILON = 1e-3

POINT_VERTEX_SHADER = """
#version 330 core

uniform mat4 u_view_proj;
uniform mat4 u_model;
uniform float u_point_size;
uniform float u_attenuate;

in vec3 in_position;
in vec4 in_color;

out vec4 v_color;

void main() {
    vec4 clip = u_view_proj * u_model * vec4(in_position, 1.0);
    gl_Position = clip;

    // clip.w is the view-space distance along the viewing axis
    float proxy = max(clip.w, %(eps)s);
    float size = mix(u_point_size, u_point_size / proxy, u_attenuate);
    gl_PointSize = clamp(size, %(min_size)s, %(max_size)s);

    v_color = in_color;
}
""" % {
    "eps": f"{DEPTH_PROXY_EPSILON:.6f}",
    "min_size": f"{MIN_POINT_SIZE:.1f}",
    "max_size": f"{MAX_POINT_SIZE:.1f}",
}

POINT_FRAGMENT_SHADER = """
#version 330 core

in vec4 v_color;

out vec4 f_color;

void main() {
    vec2 p = gl_PointCoord * 2.0 - 1.0;
    if (dot(p, p) > 1.0) {
        discard;
    }
    f_color = vec4(v_color.rgb, 1.0);
}
"""


def point_size_for_depth(base_point_size: float, clip_w: float, attenuate: bool) -> float:
    """CPU mirror of the vertex shader's point-size rule."""
    if attenuate:
        size = base_point_size / max(clip_w, DEPTH_PROXY_EPSILON)
    else:
        size = base_point_size
    return min(max(size, MIN_POINT_SIZE), MAX_POINT_SIZE)


__all__ = [
    "MAX_POINT_SIZE",
    "MIN_POINT_SIZE",
    "POINT_FRAGMENT_SHADER",
    "POINT_VERTEX_SHADER",
    "point_size_for_depth",
]
