"""Ideal-customer-profile models and the engine that scores companies against them."""