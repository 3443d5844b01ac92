"""
Service layer: операции над жизненным циклом заказа и доставки
"""
