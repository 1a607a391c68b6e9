import matplotlib

matplotlib.use("Agg")

import pytest

from sd_model import Model


@pytest.fixture
def model():
    return Model("Test Model")


@pytest.fixture
def inflow_model():
    """Source/sink --rate(1)--> level(start 0)"""
    model = Model("Inflow")
    level = model.create_level_node("Stock", 0.0)
    rate = model.create_rate_node("Inflow")
    one = model.create_constant_node("One", 1.0)
    source = model.create_source_sink_node()
    model.set_formula(rate, one)
    model.add_flow_from_source_sink_node_to_rate_node(source, rate)
    model.add_flow_from_rate_node_to_level_node(rate, level)
    return model, level, rate, one, source
