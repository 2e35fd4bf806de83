def total_revenue(db) -> float:
    """Sum of amount over completed payments, 0 when there are none."""
    result = list(db["payment"].aggregate([
        {"$match": {"status": "completed"}},
        {"$group": {"_id": None, "totalRevenue": {"$sum": "$amount"}}},
    ]))
    return result[0]["totalRevenue"] if result else 0


def count_users(db) -> int:
    return db["user"].count_documents({"isAdmin": {"$ne": True}})


def count_orders(db) -> int:
    return db["order"].count_documents({})


def stats(db) -> dict:
    # independent reads, no snapshot isolation between them
    return {
        "totalUsers": count_users(db),
        "totalOrders": count_orders(db),
        "totalRevenue": total_revenue(db),
    }
