"""sod-spread: Stochastic landscape spread model of Sudden Oak Death.

A raster-based, weekly time-stepped ensemble simulation of the forest
pathogen Phytophthora ramorum:
  - Spore production by infected bay laurel (canopy host), modulated by weather
  - Wind-biased Cauchy / Cauchy-mixture dispersal kernel
  - Two-host (bay laurel + oak) susceptible/infected bookkeeping per cell
  - Independent replicas run in parallel, aggregated to mean and stddev maps
"""

__version__ = "0.1.0"
