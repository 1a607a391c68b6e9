# -*- coding: utf-8 -*-
"""
Population model: births and deaths proportional to the population, with
the birth rate shrinking as the population approaches its carrying capacity.
"""

import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'Sim')))

from formula_parser import create_node_ids, invert_node_ids, parse_formula
from sd_model import Model
from sd_simulation import ModelExecution

sim_model = Model("Population")

population = sim_model.create_level_node("Population", 1000.0)
births = sim_model.create_rate_node("Births")
deaths = sim_model.create_rate_node("Deaths")
crowding = sim_model.create_auxiliary_node("Crowding")

fertility = sim_model.create_constant_node("Fertility", 0.05)
mortality = sim_model.create_constant_node("Mortality", 0.02)
capacity = sim_model.create_constant_node("Capacity", 5000.0)
one = sim_model.create_constant_node("One", 1.0)

womb = sim_model.create_source_sink_node()
grave = sim_model.create_source_sink_node()

sim_model.add_flow_from_source_sink_node_to_rate_node(womb, births)
sim_model.add_flow_from_rate_node_to_level_node(births, population)
sim_model.add_flow_from_level_node_to_rate_node(population, deaths)
sim_model.add_flow_from_rate_node_to_source_sink_node(deaths, grave)

# Formulas reference nodes by id: CN(1) is the first constant, LN(1) the first level
auxiliary_ids = create_node_ids(sim_model.get_auxiliary_nodes())
constant_ids = create_node_ids(sim_model.get_constant_nodes())
level_ids = create_node_ids(sim_model.get_level_nodes())
tables = (invert_node_ids(auxiliary_ids), invert_node_ids(constant_ids), invert_node_ids(level_ids))

sim_model.set_formula(crowding, parse_formula("MAX(CN(4) - LN(1) / CN(3), CN(4) - CN(4))", *tables))
sim_model.set_formula(births, parse_formula("LN(1) * CN(1) * AN(1)", *tables))
sim_model.set_formula(deaths, parse_formula("ROUND(LN(1) * CN(2), CN(4) - CN(4))", *tables))

for node in (crowding, births, deaths):
    print(f"{node.get_node_name()} = {node.get_formula()}")

sim_model.validate_model_and_set_unchangeable()

execution = ModelExecution(sim_model)
execution.run(100)

execution.print_summary()
execution.plot()
