"""
Sample graph loaded into an empty local store and by the reseed endpoint.
"""

from __future__ import annotations

from ..graph import Edge, Graph, Node

_NODES = [
    ("company_1", "TechCorp Inc", "Company", {"industry": "Technology", "founded": 2010, "employees": 5000}),
    ("company_2", "DataSystems LLC", "Company", {"industry": "Software", "founded": 2015, "employees": 1200}),
    ("company_3", "CloudVentures", "Company", {"industry": "Cloud Computing", "founded": 2018, "employees": 800}),
    ("person_1", "Sarah Johnson", "Person", {"title": "CEO", "years_experience": 15}),
    ("person_2", "Michael Chen", "Person", {"title": "CTO", "years_experience": 12}),
    ("person_3", "Emily Rodriguez", "Person", {"title": "Data Scientist", "years_experience": 6}),
    ("product_1", "DataPlatform Pro", "Product", {"category": "Analytics", "price": 9999}),
    ("location_1", "San Francisco", "Location", {"country": "USA", "state": "CA"}),
]

_EDGES = [
    ("edge_1", "person_1", "company_1", "WORKS_AT", {"since": 2010, "role": "CEO"}),
    ("edge_2", "person_2", "company_1", "WORKS_AT", {"since": 2012, "role": "CTO"}),
    ("edge_3", "person_3", "company_2", "WORKS_AT", {"since": 2019}),
    ("edge_4", "person_2", "person_1", "REPORTS_TO", {}),
    ("edge_5", "company_1", "product_1", "PRODUCES", {"launched": 2016}),
    ("edge_6", "company_1", "location_1", "LOCATED_IN", {"headquarters": True}),
    ("edge_7", "company_2", "company_3", "PARTNERS_WITH", {"since": 2020}),
]


def sample_graph() -> Graph:
    """Return a fresh copy of the sample graph."""
    return Graph(
        nodes=[
            Node(id=node_id, label=label, type=node_type, properties=dict(props))
            for node_id, label, node_type, props in _NODES
        ],
        edges=[
            Edge(id=edge_id, source=src, target=dst, relationship_type=rel, properties=dict(props))
            for edge_id, src, dst, rel, props in _EDGES
        ],
    )
