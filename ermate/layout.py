"""
Layout algorithms for schema tables.

Provides the two placement strategies used by the editor:
- Hierarchical: layered top-to-bottom drawing of the whole schema, used
  after SQL import and after batch table creation
- Open slot: first free grid cell near the viewport center, used when a
  single table is added by hand

Layout functions never modify their inputs. They return positions (top-left
corners, snapped to the grid) that callers apply with apply_positions().
"""

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Hashable, Iterable, Sequence

from .models import Position
from .mutations import apply_positions

if TYPE_CHECKING:
    from .models import Relationship, Schema, Table


# Geometry shared by both strategies
NODE_WIDTH = 280
NODE_HEADER_HEIGHT = 40
NODE_COLUMN_HEIGHT = 30
GRID_SIZE = 16

# Hierarchical layout parameters
NODE_SEP = 60         # Horizontal gap between two tables in a rank
RANK_SEP = 80         # Vertical gap between ranks
EDGE_SEP = 20         # Horizontal gap next to a virtual (edge) node
ORDER_ITERATIONS = 24
POSITION_ITERATIONS = 8

# Open-slot search parameters
SLOT_STEP_X = 300
SLOT_STEP_Y = 250
SLOT_MAX_RINGS = 20
SLOT_FALLBACK_OFFSET = 400


def estimate_table_height(table: "Table") -> float:
    """Rendered height of a table: header plus one row per column."""
    return NODE_HEADER_HEIGHT + len(table.columns) * NODE_COLUMN_HEIGHT


def snap_to_grid(value: float, grid_size: int = GRID_SIZE) -> float:
    """Snap a coordinate to the nearest grid line (halves round up)."""
    if grid_size <= 0:
        return value
    return math.floor(value / grid_size + 0.5) * grid_size


# --- Hierarchical layout ---

@dataclass
class _Node:
    """A node of the layered graph (a table, or a virtual node on a long edge)."""
    key: Hashable
    width: float
    height: float
    virtual: bool = False
    rank: int = 0
    x: float = 0.0
    y: float = 0.0


def _collect_edges(node_keys: set, relationships: Iterable["Relationship"]) -> list[tuple]:
    """One edge per distinct (source table, target table) pair; no self loops."""
    edges: list[tuple] = []
    seen: set[tuple] = set()
    for rel in relationships:
        edge = (rel.source.table_id, rel.target.table_id)
        if edge[0] == edge[1] or edge[0] not in node_keys or edge[1] not in node_keys:
            continue
        if edge not in seen:
            seen.add(edge)
            edges.append(edge)
    return edges


def _break_cycles(order: list, edges: list[tuple]) -> list[tuple]:
    """
    Make the graph acyclic by reversing DFS back edges.

    The DFS visits nodes in input order and successors in edge order, so the
    set of reversed edges is deterministic.
    """
    successors: dict = defaultdict(list)
    for u, v in edges:
        successors[u].append(v)

    visiting, done = 1, 2
    state: dict = {}
    back_edges: set[tuple] = set()

    for start in order:
        if start in state:
            continue
        state[start] = visiting
        stack = [(start, iter(successors[start]))]
        while stack:
            node, children = stack[-1]
            for child in children:
                child_state = state.get(child)
                if child_state == visiting:
                    back_edges.add((node, child))
                elif child_state is None:
                    state[child] = visiting
                    stack.append((child, iter(successors[child])))
                    break
            else:
                state[node] = done
                stack.pop()

    acyclic: list[tuple] = []
    seen: set[tuple] = set()
    for u, v in edges:
        edge = (v, u) if (u, v) in back_edges else (u, v)
        if edge not in seen:
            seen.add(edge)
            acyclic.append(edge)
    return acyclic


def _assign_ranks(order: list, edges: list[tuple]) -> dict:
    """
    Longest-path ranking followed by a tightening pass.

    Every edge u -> v ends up with rank[v] >= rank[u] + 1. Longest-path puts
    every source on rank 0; sources are then pulled down next to their
    closest successor to shorten their edges.
    """
    successors: dict = defaultdict(list)
    predecessors: dict = defaultdict(list)
    indegree = {key: 0 for key in order}
    for u, v in edges:
        successors[u].append(v)
        predecessors[v].append(u)
        indegree[v] += 1

    # Kahn's algorithm, seeded in input order
    queue = [key for key in order if indegree[key] == 0]
    topological: list = []
    while queue:
        key = queue.pop(0)
        topological.append(key)
        for child in successors[key]:
            indegree[child] -= 1
            if indegree[child] == 0:
                queue.append(child)

    rank: dict = {}
    for key in topological:
        rank[key] = max((rank[p] + 1 for p in predecessors[key]), default=0)

    for key in reversed(topological):
        if not predecessors[key] and successors[key]:
            rank[key] = min(rank[c] for c in successors[key]) - 1

    lowest = min(rank.values(), default=0)
    return {key: value - lowest for key, value in rank.items()}


def _split_long_edges(nodes: dict, edges: list[tuple]) -> list[tuple]:
    """Replace every edge spanning several ranks by a chain of virtual nodes."""
    short_edges: list[tuple] = []
    counter = 0
    for u, v in edges:
        previous = u
        for rank in range(nodes[u].rank + 1, nodes[v].rank):
            counter += 1
            key = ("virtual", counter)
            nodes[key] = _Node(key=key, width=0, height=0, virtual=True, rank=rank)
            short_edges.append((previous, key))
            previous = key
        short_edges.append((previous, v))
    return short_edges


def _initial_layers(order: list, nodes: dict, edges: list[tuple]) -> list[list]:
    """Fill ranks by depth-first walks from each node in input order."""
    successors: dict = defaultdict(list)
    for u, v in edges:
        successors[u].append(v)

    depth = max((n.rank for n in nodes.values()), default=0)
    layers: list[list] = [[] for _ in range(depth + 1)]
    visited: set = set()

    for start in order:
        stack = [start]
        while stack:
            key = stack.pop()
            if key in visited:
                continue
            visited.add(key)
            layers[nodes[key].rank].append(key)
            stack.extend(reversed(successors[key]))
    return layers


def _count_crossings(layers: list[list], lower_neighbors: dict) -> int:
    """Total number of edge crossings between consecutive ranks."""
    total = 0
    for upper, lower in zip(layers, layers[1:]):
        lower_pos = {key: i for i, key in enumerate(lower)}
        ends = []
        for upper_pos, key in enumerate(upper):
            for neighbor in lower_neighbors[key]:
                ends.append((upper_pos, lower_pos[neighbor]))
        ends.sort()
        for i in range(len(ends)):
            for j in range(i + 1, len(ends)):
                if ends[i][0] < ends[j][0] and ends[i][1] > ends[j][1]:
                    total += 1
    return total


def _reorder_by_barycenter(layer: list, fixed: list, neighbors: dict) -> list:
    """
    Sort a rank by the mean position of each node's neighbors in `fixed`.

    Nodes without neighbors in the fixed rank keep their slot.
    """
    fixed_pos = {key: i for i, key in enumerate(fixed)}
    movable = []
    slots = []
    for index, key in enumerate(layer):
        adjacent = [fixed_pos[n] for n in neighbors[key]]
        if adjacent:
            movable.append((sum(adjacent) / len(adjacent), index, key))
            slots.append(index)
    movable.sort()
    result = list(layer)
    for slot, (_, _, key) in zip(slots, movable):
        result[slot] = key
    return result


def _order_layers(layers: list[list], edges: list[tuple]) -> list[list]:
    """Reduce crossings with alternating down/up barycenter sweeps."""
    upper_neighbors: dict = defaultdict(list)
    lower_neighbors: dict = defaultdict(list)
    for u, v in edges:
        lower_neighbors[u].append(v)
        upper_neighbors[v].append(u)

    best = [list(layer) for layer in layers]
    best_crossings = _count_crossings(best, lower_neighbors)

    current = [list(layer) for layer in layers]
    for iteration in range(ORDER_ITERATIONS):
        if best_crossings == 0:
            break
        if iteration % 2 == 0:
            for r in range(1, len(current)):
                current[r] = _reorder_by_barycenter(current[r], current[r - 1], upper_neighbors)
        else:
            for r in range(len(current) - 2, -1, -1):
                current[r] = _reorder_by_barycenter(current[r], current[r + 1], lower_neighbors)

        crossings = _count_crossings(current, lower_neighbors)
        if crossings < best_crossings:
            best = [list(layer) for layer in current]
            best_crossings = crossings

    return best


def _separation(left: _Node, right: _Node) -> float:
    """Minimum center-to-center distance between two neighbors in a rank."""
    gap_left = EDGE_SEP if left.virtual else NODE_SEP
    gap_right = EDGE_SEP if right.virtual else NODE_SEP
    return (left.width + right.width) / 2 + (gap_left + gap_right) / 2


def _median(values: list[float]) -> float:
    values = sorted(values)
    middle = len(values) // 2
    if len(values) % 2:
        return values[middle]
    return (values[middle - 1] + values[middle]) / 2


def _place_layer(layer: list, nodes: dict, desired: list[float]) -> None:
    """
    Put a rank as close as possible to the desired x values while keeping
    its order and the minimum separations.

    A left-to-right pass only pushes nodes right, a right-to-left pass only
    pushes them left; both satisfy the separations, and so does their mean.
    """
    count = len(layer)
    seps = [_separation(nodes[layer[i]], nodes[layer[i + 1]]) for i in range(count - 1)]

    pushed_right = list(desired)
    for i in range(1, count):
        pushed_right[i] = max(desired[i], pushed_right[i - 1] + seps[i - 1])

    pushed_left = list(desired)
    for i in range(count - 2, -1, -1):
        pushed_left[i] = min(desired[i], pushed_left[i + 1] - seps[i])

    for i, key in enumerate(layer):
        nodes[key].x = (pushed_right[i] + pushed_left[i]) / 2


def _assign_coordinates(layers: list[list], nodes: dict, edges: list[tuple]) -> None:
    """Assign center coordinates: y from the rank, x from neighbor medians."""
    upper_neighbors: dict = defaultdict(list)
    lower_neighbors: dict = defaultdict(list)
    for u, v in edges:
        lower_neighbors[u].append(v)
        upper_neighbors[v].append(u)

    # y: each rank is as tall as its tallest table, nodes centered in it
    top = 0.0
    for layer in layers:
        rank_height = max((nodes[key].height for key in layer), default=0)
        for key in layer:
            nodes[key].y = top + rank_height / 2
        top += rank_height + RANK_SEP

    # x: start packed and centered on 0
    for layer in layers:
        x = 0.0
        for i, key in enumerate(layer):
            if i:
                x += _separation(nodes[layer[i - 1]], nodes[key])
            nodes[key].x = x
        shift = x / 2
        for key in layer:
            nodes[key].x -= shift

    for iteration in range(POSITION_ITERATIONS):
        if iteration % 2 == 0:
            sweep, neighbors = range(1, len(layers)), upper_neighbors
        else:
            sweep, neighbors = range(len(layers) - 2, -1, -1), lower_neighbors
        for r in sweep:
            layer = layers[r]
            desired = []
            for key in layer:
                adjacent = [nodes[n].x for n in neighbors[key]]
                desired.append(_median(adjacent) if adjacent else nodes[key].x)
            _place_layer(layer, nodes, desired)

    # translate so the drawing starts at (0, 0)
    min_x = min(n.x - n.width / 2 for n in nodes.values())
    min_y = min(n.y - n.height / 2 for n in nodes.values())
    for node in nodes.values():
        node.x -= min_x
        node.y -= min_y


def compute_layout(
    tables: Sequence["Table"],
    relationships: Sequence["Relationship"]
) -> dict[str, Position]:
    """
    Compute a layered top-to-bottom layout for all tables.

    One node per table, sized by its estimated rendered height, and one edge
    per relationship from the source (FK) table to the target (PK) table.
    Steps: break cycles, assign ranks, split long edges, reduce crossings,
    assign coordinates. Relationships pointing at unknown tables and self
    references are ignored.

    Args:
        tables: Tables to arrange
        relationships: Relationships defining the hierarchy

    Returns:
        Mapping of table ID to its new top-left position, snapped to the grid
    """
    if not tables:
        return {}

    order = [t.id for t in tables]
    nodes: dict = {
        t.id: _Node(key=t.id, width=NODE_WIDTH, height=estimate_table_height(t))
        for t in tables
    }

    edges = _break_cycles(order, _collect_edges(set(nodes), relationships))
    for key, rank in _assign_ranks(order, edges).items():
        nodes[key].rank = rank

    edges = _split_long_edges(nodes, edges)
    layers = _order_layers(_initial_layers(order, nodes, edges), edges)
    _assign_coordinates(layers, nodes, edges)

    positions: dict[str, Position] = {}
    for table in tables:
        node = nodes[table.id]
        positions[table.id] = Position(
            x=snap_to_grid(node.x - node.width / 2),
            y=snap_to_grid(node.y - node.height / 2),
        )
    return positions


def layout_schema(schema: "Schema") -> "Schema":
    """Return the schema with every table moved to its hierarchical position."""
    return apply_positions(schema, compute_layout(schema.tables, schema.relationships))


# --- Open-slot search ---

def find_open_position(
    existing_tables: Sequence["Table"],
    viewport_center: Position
) -> Position:
    """
    Find an unoccupied grid position near the viewport center.

    The center is tried first. After that the search spirals outward ring by
    ring, checking only the cells on each ring's perimeter, and returns the
    first cell where a one-column table would not overlap any existing table.

    Args:
        existing_tables: Tables already on the canvas
        viewport_center: Center of the visible area

    Returns:
        A grid-snapped position, or a fixed offset from the center when no
        free cell was found within the search bound
    """
    boxes = [
        (t.position.x, t.position.y, NODE_WIDTH, estimate_table_height(t))
        for t in existing_tables
    ]
    candidate_w = NODE_WIDTH
    candidate_h = NODE_HEADER_HEIGHT + NODE_COLUMN_HEIGHT

    def overlaps(x: float, y: float) -> bool:
        for bx, by, bw, bh in boxes:
            if x < bx + bw and x + candidate_w > bx and y < by + bh and y + candidate_h > by:
                return True
        return False

    cx = snap_to_grid(viewport_center.x)
    cy = snap_to_grid(viewport_center.y)
    if not overlaps(cx, cy):
        return Position(x=cx, y=cy)

    for ring in range(1, SLOT_MAX_RINGS + 1):
        for dx in range(-ring, ring + 1):
            for dy in range(-ring, ring + 1):
                # Only the outer ring
                if abs(dx) != ring and abs(dy) != ring:
                    continue
                x = snap_to_grid(cx + dx * SLOT_STEP_X)
                y = snap_to_grid(cy + dy * SLOT_STEP_Y)
                if not overlaps(x, y):
                    return Position(x=x, y=y)

    return Position(
        x=snap_to_grid(cx + SLOT_FALLBACK_OFFSET),
        y=snap_to_grid(cy + SLOT_FALLBACK_OFFSET),
    )
