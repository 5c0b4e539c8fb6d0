"""REST API for the Shame Game backend"""
