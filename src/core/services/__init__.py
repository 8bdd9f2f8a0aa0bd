# rrd-graph-generator - Services (Domain Services)
# Orchestrate domain logic with injected ports
