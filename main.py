import asyncio
from datetime import datetime

from py_odm.client import connect, disconnect
from py_odm.document.document import Document


class Employee(Document, collection="employees"):
    name = {"type": str, "required": True}
    boss = "Boss"


class Boss(Document, collection="bosses"):
    salary = {"type": int, "min": 0}
    hired = {"type": datetime, "default": datetime.now}
    employees = [Employee]


async def main():
    await connect("lsm://./db")

    boss = Boss.create(salary=10_000_000)
    await boss.save()

    scott = Employee.create(name="Scott", boss=boss)
    await scott.save()

    # references are stored as ids, so the cycle is saved one side at a time
    boss.employees.append(scott)
    await boss.save()

    loaded = await Boss.load_one({"salary": 10_000_000})
    print(loaded)
    print(loaded.employees[0], "-> boss id", loaded.employees[0].boss)

    await disconnect()


if __name__ == "__main__":
    asyncio.run(main())
