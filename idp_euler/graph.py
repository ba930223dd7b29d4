"""
Static connectivity graph of the discretization.

A graph holds one lumped mass m_i per node and, for every undirected edge
{i, j} (stored once with i < j), the two geometric coefficient vectors
c_ij and c_ji. The time-step code only reads it.

Two builders produce graphs for the drivers and the tests:
- build_line_graph: 1D piecewise linear finite elements with mass lumping
- build_grid_graph: 2D tensor-product grid with central 5-point coefficients
"""

from dataclasses import dataclass, replace

import numpy as np


@dataclass
class ComputationalGraph:
    """
    Graph descriptor.

    Parameters
    ----------
    mass : ndarray, shape (n,)
        Lumped mass of every node
    edges : ndarray, shape (E, 2)
        Undirected edges (i, j) with i < j
    c_ij : ndarray, shape (dim, E)
        Coefficient vector of the ordered pair (i, j)
    c_ji : ndarray, shape (dim, E)
        Coefficient vector of the ordered pair (j, i)
    coordinates : ndarray, shape (dim, n), optional
        Node positions (only used for output)
    ownership : ndarray of int, shape (n,), optional
        Worker owning each node
    """

    mass: np.ndarray
    edges: np.ndarray
    c_ij: np.ndarray
    c_ji: np.ndarray
    coordinates: np.ndarray = None
    ownership: np.ndarray = None

    def __post_init__(self):
        self.mass = np.asarray(self.mass, dtype=float)
        self.edges = np.asarray(self.edges, dtype=int).reshape(-1, 2)
        self.c_ij = np.asarray(self.c_ij, dtype=float).reshape(-1, len(self.edges))
        self.c_ji = np.asarray(self.c_ji, dtype=float).reshape(-1, len(self.edges))

        n = len(self.mass)
        if np.any(self.mass <= 0.0):
            raise ValueError("Lumped masses must be positive")
        if self.c_ij.shape != self.c_ji.shape:
            raise ValueError(f"c_ij and c_ji shapes differ: {self.c_ij.shape} vs {self.c_ji.shape}")
        if len(self.edges) and (self.edges.min() < 0 or self.edges.max() >= n):
            raise ValueError("Edge references a node outside the graph")
        if np.any(self.edges[:, 0] >= self.edges[:, 1]):
            raise ValueError("Edges must be stored once, as (i, j) with i < j")
        if len(np.unique(self.edges, axis=0)) != len(self.edges):
            raise ValueError("Duplicate edges in graph")

        if self.coordinates is not None:
            self.coordinates = np.asarray(self.coordinates, dtype=float).reshape(-1, n)
        if self.ownership is None:
            self.ownership = np.zeros(n, dtype=int)
        self.ownership = np.asarray(self.ownership, dtype=int)
        if self.ownership.shape != (n,):
            raise ValueError("Ownership map must have one entry per node")

        self.norm_ij = np.linalg.norm(self.c_ij, axis=0)
        self.norm_ji = np.linalg.norm(self.c_ji, axis=0)
        self.n_ij = self.c_ij / np.where(self.norm_ij > 0.0, self.norm_ij, 1.0)
        self.n_ji = self.c_ji / np.where(self.norm_ji > 0.0, self.norm_ji, 1.0)
        self.degree = np.bincount(self.edges.ravel(), minlength=n)

    @property
    def n_nodes(self):
        return len(self.mass)

    @property
    def n_edges(self):
        return len(self.edges)

    @property
    def dim(self):
        return self.c_ij.shape[0]

    @property
    def n_partitions(self):
        return len(np.unique(self.ownership))

    def directed_pairs(self):
        """Return (rows, cols) listing every edge in both directions."""
        i, j = self.edges[:, 0], self.edges[:, 1]
        return np.concatenate([i, j]), np.concatenate([j, i])

    def neighbors(self, i):
        """Sorted neighbors of node i."""
        rows, cols = self.directed_pairs()
        return np.sort(cols[rows == i])

    def partition(self, n_workers):
        """Copy of the graph with contiguous ownership ranges for n_workers."""
        if n_workers < 1:
            raise ValueError(f"Number of workers must be >= 1, got {n_workers}")
        n_workers = min(n_workers, self.n_nodes)
        ownership = np.arange(self.n_nodes) * n_workers // self.n_nodes
        return replace(self, ownership=ownership)

    def edge_partitions(self):
        """
        Edge indices grouped by the owner of their first node.

        Returns
        -------
        list of ndarray
            One sorted index array per owner, in increasing owner order
        """
        owner = self.ownership[self.edges[:, 0]]
        return [np.flatnonzero(owner == p) for p in np.unique(owner)]


def build_line_graph(n_nodes, x_range=(0.0, 1.0), periodic=False):
    """
    Graph of 1D P1 finite elements with lumped mass matrix.

    c_ij = int phi_i phi_j' dx is +1/2 towards the right neighbor and -1/2
    towards the left neighbor.

    Parameters
    ----------
    n_nodes : int
        Number of nodes (>= 2; >= 3 if periodic)
    x_range : tuple
        Domain (x_min, x_max)
    periodic : bool
        Connect the last node back to the first

    Returns
    -------
    ComputationalGraph
    """
    x_min, x_max = x_range
    length = x_max - x_min
    if n_nodes < (3 if periodic else 2):
        raise ValueError(f"Too few nodes for a line graph: {n_nodes}")
    if length <= 0.0:
        raise ValueError(f"Invalid domain {x_range}")

    k = np.arange(n_nodes - 1)
    edges = np.stack([k, k + 1], axis=1)
    c_ij = np.full(n_nodes - 1, 0.5)

    if periodic:
        h = length / n_nodes
        x = x_min + h * np.arange(n_nodes)
        mass = np.full(n_nodes, h)
        # wrap-around edge (0, n-1): node n-1 is the left neighbor of 0
        edges = np.vstack([edges, [0, n_nodes - 1]])
        c_ij = np.append(c_ij, -0.5)
    else:
        h = length / (n_nodes - 1)
        x = np.linspace(x_min, x_max, n_nodes)
        mass = np.full(n_nodes, h)
        mass[0] = mass[-1] = 0.5 * h

    return ComputationalGraph(mass=mass, edges=edges, c_ij=c_ij[None], c_ji=-c_ij[None],
                              coordinates=x[None])


def build_grid_graph(nx, ny, x_range=(0.0, 1.0), y_range=(0.0, 1.0)):
    """
    Graph of a uniform nx-by-ny tensor grid.

    Node (ix, iy) has index ix + nx * iy. Boundary nodes carry half
    (corner nodes a quarter) of the interior mass, and the coefficient of
    an edge running along a boundary row is halved accordingly, so that
    sum_j c_ij (f_j - f_i) / m_i is the central difference of div f.

    Returns
    -------
    ComputationalGraph
    """
    if nx < 2 or ny < 2:
        raise ValueError(f"Grid must have at least 2x2 nodes, got {nx}x{ny}")

    hx = (x_range[1] - x_range[0]) / (nx - 1)
    hy = (y_range[1] - y_range[0]) / (ny - 1)

    wx = np.ones(nx)
    wx[[0, -1]] = 0.5
    wy = np.ones(ny)
    wy[[0, -1]] = 0.5

    index = np.arange(nx * ny).reshape(ny, nx)
    mass = (hx * hy * wy[:, None] * wx[None, :]).ravel()

    # edges in x direction
    ex = np.stack([index[:, :-1].ravel(), index[:, 1:].ravel()], axis=1)
    cx = np.zeros((2, len(ex)))
    cx[0] = np.repeat(0.5 * hy * wy, nx - 1)

    # edges in y direction
    ey = np.stack([index[:-1, :].ravel(), index[1:, :].ravel()], axis=1)
    cy = np.zeros((2, len(ey)))
    cy[1] = np.tile(0.5 * hx * wx, ny - 1)

    xs = np.linspace(x_range[0], x_range[1], nx)
    ys = np.linspace(y_range[0], y_range[1], ny)
    X, Y = np.meshgrid(xs, ys)

    c_ij = np.concatenate([cx, cy], axis=1)
    return ComputationalGraph(mass=mass,
                              edges=np.vstack([ex, ey]),
                              c_ij=c_ij,
                              c_ji=-c_ij,
                              coordinates=np.stack([X.ravel(), Y.ravel()]))
