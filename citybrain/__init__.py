"""
CityBrain dispatch-economics engine
Zone supply/demand scoring, guarantees, flow recommendations and the ride event log
"""
